from __future__ import annotations

import asyncio

from pgp_qr_client.state import StatusKind

from conftest import STATUS_OK


def _refresh(make_console, times: int = 1):
    async def scenario():
        console = make_console()
        renders = []
        console.state.subscribe(
            lambda name: renders.append(console.state.public_keys) if name == "keys" else None
        )
        for _ in range(times):
            await console.poller.refresh()
        await console.aclose()
        return console.state, renders

    return asyncio.run(scenario())


def test_refresh_replaces_identity_lists(make_console):
    state, _renders = _refresh(make_console)

    assert state.public_keys == tuple(STATUS_OK["public_keys"])
    assert state.secret_keys == tuple(STATUS_OK["secret_keys"])
    assert state.status.kind is StatusKind.READY
    assert state.status.text == "Ready"


def test_repeated_refresh_does_not_accumulate(make_console):
    state, renders = _refresh(make_console, times=2)

    assert len(renders) == 2
    assert renders[0] == renders[1] == tuple(STATUS_OK["public_keys"])
    assert state.public_keys == tuple(STATUS_OK["public_keys"])


def test_refresh_replaces_rather_than_merges(service, make_console):
    async def scenario():
        console = make_console()
        await console.poller.refresh()
        service.route(
            "/api/status",
            json={"success": True, "public_keys": ["carol@example.com"], "secret_keys": []},
        )
        await console.poller.refresh()
        await console.aclose()
        return console.state

    state = asyncio.run(scenario())

    assert state.public_keys == ("carol@example.com",)
    assert state.secret_keys == ()


def test_missing_success_field_keeps_previous_lists(service, make_console):
    async def scenario():
        console = make_console()
        await console.poller.refresh()
        service.route("/api/status", json={"public_keys": [], "secret_keys": []})
        result = await console.poller.refresh()
        await console.aclose()
        return console.state, result

    state, result = asyncio.run(scenario())

    assert result is None
    assert state.status.kind is StatusKind.ERROR
    assert state.public_keys == tuple(STATUS_OK["public_keys"])


def test_application_error_sets_error_status(service, make_console, caplog):
    service.route("/api/status", json={"success": False, "error": "gpgme failure"})

    state, _renders = _refresh(make_console)

    assert state.status.text == "Error loading status"
    assert "gpgme failure" in caplog.text


def test_transport_failure_marks_service_unreachable(service, make_console):
    service.route("/api/status", error="connection refused")

    state, _renders = _refresh(make_console)

    assert state.status.kind is StatusKind.UNREACHABLE
    assert state.status.text == "Failed to connect"
    assert state.public_keys == ()


def test_non_2xx_status_marks_service_unreachable(service, make_console):
    service.route("/api/status", status=500, content=b"Internal Server Error")

    state, _renders = _refresh(make_console)

    assert state.status.kind is StatusKind.UNREACHABLE


def test_list_of_non_strings_is_malformed(service, make_console):
    service.route("/api/status", json={"success": True, "public_keys": [1, 2]})

    state, _renders = _refresh(make_console)

    assert state.status.kind is StatusKind.ERROR
    assert state.public_keys == ()
