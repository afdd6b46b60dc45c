"""Run the PGP QR client GUI."""
from __future__ import annotations

import argparse
from typing import Optional, Sequence

from .config import ClientConfig
from .log import configure_logging


def build_parser() -> argparse.ArgumentParser:
    defaults = ClientConfig()
    parser = argparse.ArgumentParser(
        prog="pgp-qr-client",
        description="Desktop client for a GPG key service with QR code transfer.",
    )
    parser.add_argument(
        "--url",
        default=defaults.base_url,
        help=f"base URL of the key service (default: {defaults.base_url})",
    )
    parser.add_argument(
        "--log-level",
        default=defaults.log_level,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        type=str.upper,
    )
    return parser


def parse_config(argv: Optional[Sequence[str]] = None) -> ClientConfig:
    args = build_parser().parse_args(argv)
    return ClientConfig(base_url=args.url, log_level=args.log_level)


def main(argv: Optional[Sequence[str]] = None) -> int:
    config = parse_config(argv)
    configure_logging(config.log_level)

    from .app import run

    return run(config)


if __name__ == "__main__":  # pragma: no cover - manual launch only
    raise SystemExit(main())
