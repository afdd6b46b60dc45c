"""Application icon helpers."""
from __future__ import annotations


def create_icon(size: int = 64):  # pragma: no cover - requires PyQt at runtime
    """Create the key badge :class:`~PyQt5.QtGui.QIcon` shown in the title bar.

    The import is performed lazily so that automated tests do not require a
    graphical backend.
    """

    try:
        from PyQt5.QtGui import QBrush, QColor, QFont, QIcon, QPainter, QPen, QPixmap
        from PyQt5.QtCore import Qt
    except Exception as exc:  # pragma: no cover - depends on environment
        raise RuntimeError("PyQt5 is required to generate the application icon") from exc

    pixmap = QPixmap(size, size)
    pixmap.fill(Qt.transparent)

    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing)
    painter.setBrush(QBrush(QColor("#5E81AC")))
    painter.setPen(Qt.NoPen)
    painter.drawRoundedRect(4, 4, size - 8, size - 8, size // 6, size // 6)

    painter.setPen(QPen(QColor("#ECEFF4"), 2))
    painter.setFont(QFont("Arial", size // 4, QFont.Bold))
    painter.drawText(pixmap.rect(), Qt.AlignCenter, "PGP")
    painter.end()

    return QIcon(pixmap)


__all__ = ["create_icon"]
