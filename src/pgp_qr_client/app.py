"""PyQt5 user interface for the PGP QR client."""
from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future
from typing import Awaitable, Callable, Dict, Optional

from PyQt5.QtCore import QByteArray, QObject, QThread, Qt, pyqtSignal
from PyQt5.QtGui import QFont, QImage, QPixmap
from PyQt5.QtSvg import QSvgWidget
from PyQt5.QtWidgets import (
    QApplication,
    QCheckBox,
    QComboBox,
    QFileDialog,
    QFormLayout,
    QGroupBox,
    QHBoxLayout,
    QLabel,
    QLineEdit,
    QListWidget,
    QMainWindow,
    QMessageBox,
    QPushButton,
    QTabWidget,
    QTextBrowser,
    QTextEdit,
    QVBoxLayout,
    QWidget,
)

from .classifier import ScanAction
from .config import CameraConfig, ClientConfig, StyleConfig
from .console import KeyConsole
from .decoders import CameraDecoder
from .icon import create_icon
from .state import StatusKind

log = logging.getLogger(__name__)

_FORM_TITLES = {
    "export": "Export Key",
    "import": "Import Key",
    "encrypt": "Encrypt",
    "decrypt": "Decrypt",
    "sign": "Sign",
    "verify": "Verify",
}

_ACTION_TITLES = {
    ScanAction.IMPORT_KEY: "Import This Key",
    ScanAction.DECRYPT_MESSAGE: "Decrypt This Message",
    ScanAction.VERIFY_MESSAGE: "Verify This Message",
}


class LoopThread(QThread):  # pragma: no cover - requires Qt event loop
    """Runs the asyncio event loop that owns every network and camera call."""

    def __init__(self):
        super().__init__()
        self.loop = asyncio.new_event_loop()

    def run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()
        self.loop.close()

    def call(self, factory: Callable[[], Awaitable[object]]) -> Future:
        async def runner():
            return await factory()

        future = asyncio.run_coroutine_threadsafe(runner(), self.loop)
        future.add_done_callback(self._report)
        return future

    @staticmethod
    def _report(future: Future) -> None:
        if not future.cancelled() and future.exception() is not None:
            log.error("Background task failed", exc_info=future.exception())

    def shutdown(self, timeout_ms: int = 3000) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self.wait(timeout_ms)


class StateBridge(QObject):  # pragma: no cover - requires Qt event loop
    """Carries state change notifications from the loop thread to the Qt thread."""

    changed = pyqtSignal(str)
    frame_captured = pyqtSignal(object)


class FormPanel(QWidget):  # pragma: no cover - requires Qt event loop
    """Input widgets for one operation, keyed by form field name."""

    submitted = pyqtSignal(str)

    def __init__(self, name: str, style: StyleConfig):
        super().__init__()
        self.name = name
        self._widgets: Dict[str, QWidget] = {}
        layout = QFormLayout(self)
        mono = QFont(style.font_mono, 11)

        if name == "export":
            self._add(layout, "key_id", "Key ID / email:", QLineEdit())
            self._add(layout, "secret", "", QCheckBox("Export secret key"))
        elif name == "import":
            self._add(layout, "key_data", "Key data:", QTextEdit(), mono)
        elif name == "encrypt":
            self._add(layout, "recipients", "Recipients (comma separated):", QLineEdit())
            self._add(layout, "plaintext", "Plaintext:", QTextEdit(), mono)
        elif name == "decrypt":
            self._add(layout, "ciphertext", "Ciphertext:", QTextEdit(), mono)
        elif name == "sign":
            self._add(layout, "signer_key_id", "Signer key ID:", QLineEdit())
            self._add(layout, "plaintext", "Plaintext:", QTextEdit(), mono)
            mode = QComboBox()
            mode.addItems(["clearsign", "detach", "normal"])
            self._add(layout, "sign_mode", "Mode:", mode)
        elif name == "verify":
            self._add(layout, "signed_data", "Signed data:", QTextEdit(), mono)

        submit_btn = QPushButton(_FORM_TITLES[name])
        submit_btn.setObjectName("AccentButton")
        submit_btn.clicked.connect(lambda: self.submitted.emit(self.name))
        layout.addRow(submit_btn)

    def _add(self, layout, field_name, label, widget, font=None) -> None:
        if font is not None:
            widget.setFont(font)
        self._widgets[field_name] = widget
        layout.addRow(label, widget)

    def values(self) -> Dict[str, object]:
        values: Dict[str, object] = {}
        for field_name, widget in self._widgets.items():
            if isinstance(widget, QCheckBox):
                values[field_name] = widget.isChecked()
            elif isinstance(widget, QComboBox):
                values[field_name] = widget.currentText()
            elif isinstance(widget, QTextEdit):
                values[field_name] = widget.toPlainText()
            else:
                values[field_name] = widget.text()
        return values

    def load(self, values: Dict[str, object]) -> None:
        for field_name, value in values.items():
            widget = self._widgets.get(field_name)
            if widget is None:
                continue
            if isinstance(widget, QCheckBox):
                widget.setChecked(bool(value))
            elif isinstance(widget, QComboBox):
                index = widget.findText(str(value))
                if index >= 0:
                    widget.setCurrentIndex(index)
            elif isinstance(widget, QTextEdit):
                if widget.toPlainText() != str(value):
                    widget.setPlainText(str(value))
            elif widget.text() != str(value):
                widget.setText(str(value))


class MainWindow(QWidget):  # pragma: no cover - requires Qt event loop
    def __init__(
        self,
        console: KeyConsole,
        loop_thread: LoopThread,
        bridge: StateBridge,
        style: StyleConfig,
    ):
        super().__init__()
        self._console = console
        self._state = console.state
        self._loop = loop_thread
        self._bridge = bridge
        self._style = style
        self._forms: Dict[str, FormPanel] = {}
        self._action_buttons: Dict[ScanAction, QPushButton] = {}
        self._cv2_module = None

        self._setup_ui()
        bridge.changed.connect(self._on_state_changed)
        bridge.frame_captured.connect(self._on_camera_frame)

    def _setup_ui(self) -> None:
        layout = QVBoxLayout(self)

        self._status_banner = QLabel("Ready")
        self._status_banner.setAlignment(Qt.AlignCenter)
        self._status_banner.setObjectName("SuccessLabel")
        layout.addWidget(self._status_banner)

        body = QHBoxLayout()
        body.addWidget(self._create_keys_group(), 1)

        self._tabs = QTabWidget()
        for name, title in _FORM_TITLES.items():
            panel = FormPanel(name, self._style)
            panel.load(self._state.form_values(name))
            panel.submitted.connect(self._submit_form)
            self._forms[name] = panel
            self._tabs.addTab(panel, title)
        self._tabs.addTab(self._create_scan_tab(), "Scan QR")
        body.addWidget(self._tabs, 2)
        layout.addLayout(body)

        layout.addWidget(self._create_result_group())

    def _create_keys_group(self) -> QWidget:
        group = QGroupBox("Keys")
        group_layout = QVBoxLayout()
        self._public_keys = QListWidget()
        self._secret_keys = QListWidget()
        refresh_btn = QPushButton("Refresh")
        refresh_btn.clicked.connect(lambda: self._loop.call(self._console.poller.refresh))
        group_layout.addWidget(QLabel("Public keys:"))
        group_layout.addWidget(self._public_keys)
        group_layout.addWidget(QLabel("Secret keys:"))
        group_layout.addWidget(self._secret_keys)
        group_layout.addWidget(refresh_btn)
        group.setLayout(group_layout)
        return group

    def _create_result_group(self) -> QWidget:
        group = QGroupBox("Result")
        group_layout = QHBoxLayout()

        self._result_view = QTextBrowser()
        self._result_view.setMinimumHeight(160)
        self._result_view.setFont(QFont(self._style.font_mono, 10))

        qr_column = QVBoxLayout()
        self._qr_heading = QLabel("QR Code for Transfer:")
        self._qr_view = QSvgWidget()
        self._qr_view.setObjectName("qrDisplayLabel")
        self._qr_view.setFixedSize(256, 256)
        self._qr_hint = QLabel("Scan this QR code with the other device.")
        self._qr_hint.setObjectName("SubtleLabel")
        qr_column.addWidget(self._qr_heading)
        qr_column.addWidget(self._qr_view)
        qr_column.addWidget(self._qr_hint)
        self._set_qr_visible(False)

        group_layout.addWidget(self._result_view, 1)
        group_layout.addLayout(qr_column)
        group.setLayout(group_layout)
        return group

    def _create_scan_tab(self) -> QWidget:
        tab = QWidget()
        layout = QVBoxLayout(tab)

        self._camera_display = QLabel("Camera preview will appear here")
        self._camera_display.setObjectName("qrDisplayLabel")
        self._camera_display.setAlignment(Qt.AlignCenter)
        self._camera_display.setMinimumSize(320, 240)

        self._scan_message = QLabel("Camera idle")
        self._scan_message.setAlignment(Qt.AlignCenter)
        self._scan_message.setObjectName("SubtleLabel")

        button_row = QHBoxLayout()
        self._start_scan_btn = QPushButton("Start Camera Scan")
        self._stop_scan_btn = QPushButton("Stop Camera")
        self._stop_scan_btn.hide()
        load_file_btn = QPushButton("Load QR Image File")
        self._start_scan_btn.clicked.connect(lambda: self._loop.call(self._console.start_scan))
        self._stop_scan_btn.clicked.connect(lambda: self._loop.call(self._console.stop_scan))
        load_file_btn.clicked.connect(self._load_qr_file)
        button_row.addWidget(self._start_scan_btn)
        button_row.addWidget(self._stop_scan_btn)
        button_row.addWidget(load_file_btn)

        self._scanned_text = QTextEdit()
        self._scanned_text.setReadOnly(True)
        self._scanned_text.setFont(QFont(self._style.font_mono, 10))
        self._scanned_type = QLabel("Type: N/A")
        self._scanned_digest = QLabel("SHA-256: ----")
        self._scanned_digest.setObjectName("ChecksumLabel")

        action_row = QHBoxLayout()
        for action, title in _ACTION_TITLES.items():
            button = QPushButton(title)
            button.setObjectName("AccentButton")
            button.hide()
            button.clicked.connect(
                lambda _checked=False, act=action: self._loop.call(
                    lambda: self._console.invoke_action(act)
                )
            )
            self._action_buttons[action] = button
            action_row.addWidget(button)

        layout.addWidget(self._camera_display)
        layout.addLayout(button_row)
        layout.addWidget(self._scan_message)
        layout.addWidget(QLabel("Scanned data:"))
        layout.addWidget(self._scanned_text)
        layout.addWidget(self._scanned_type)
        layout.addWidget(self._scanned_digest)
        layout.addLayout(action_row)
        return tab

    def _submit_form(self, name: str) -> None:
        values = self._forms[name].values()
        self._loop.call(lambda: self._console.submit_form(name, values))

    def _load_qr_file(self) -> None:
        path, _ = QFileDialog.getOpenFileName(
            self, "Open QR Image", "", "Images (*.png *.jpg *.jpeg *.bmp)"
        )
        if not path:
            return
        self._loop.call(lambda: self._console.scan_image_file(path))

    def _on_state_changed(self, name: str) -> None:
        handler = {
            "status": self._render_status,
            "keys": self._render_keys,
            "result": self._render_result,
            "scan_message": self._render_scan_message,
            "scan_controls": self._render_scan_controls,
            "classified": self._render_classified,
            "forms": self._render_forms,
            "notice": self._render_notice,
        }.get(name)
        if handler is not None:
            handler()

    def _render_status(self) -> None:
        status = self._state.status
        self._status_banner.setText(status.text)
        if status.kind in (StatusKind.ERROR, StatusKind.UNREACHABLE):
            self._status_banner.setObjectName("WarningLabel")
        else:
            self._status_banner.setObjectName("SuccessLabel")
        self._status_banner.style().polish(self._status_banner)

    def _render_keys(self) -> None:
        self._public_keys.clear()
        self._public_keys.addItems(list(self._state.public_keys))
        self._secret_keys.clear()
        self._secret_keys.addItems(list(self._state.secret_keys))

    def _render_result(self) -> None:
        model = self._state.result
        self._result_view.setHtml(model.result_html())
        if model.visual_payload is None:
            self._qr_view.load(QByteArray())
            self._set_qr_visible(False)
            return
        self._qr_view.load(QByteArray(model.visual_payload.encode("utf-8")))
        self._set_qr_visible(True)

    def _set_qr_visible(self, visible: bool) -> None:
        for widget in (self._qr_heading, self._qr_view, self._qr_hint):
            widget.setVisible(visible)

    def _render_scan_message(self) -> None:
        self._scan_message.setText(self._state.scan_message)

    def _render_scan_controls(self) -> None:
        active = self._state.scanner_active
        self._start_scan_btn.setVisible(not active)
        self._stop_scan_btn.setVisible(active)
        if not active:
            self._camera_display.clear()
            self._camera_display.setText("Camera preview will appear here")

    def _render_classified(self) -> None:
        payload = self._state.classified
        actions = payload.actions if payload is not None else frozenset()
        for action, button in self._action_buttons.items():
            button.setVisible(action in actions)
        if payload is None:
            self._scanned_text.clear()
            self._scanned_type.setText("Type: N/A")
            self._scanned_digest.setText("SHA-256: ----")
            return
        self._scanned_text.setPlainText(payload.raw_text)
        label = payload.label
        if payload.error:
            label = f"{label} ({payload.error})"
        self._scanned_type.setText(f"Type: {label}")
        self._scanned_digest.setText(f"SHA-256: {payload.digest[:16]}")

    def _render_forms(self) -> None:
        for name, panel in self._forms.items():
            panel.load(dict(self._state.form_values(name)))

    def _render_notice(self) -> None:
        if self._state.notice:
            QMessageBox.information(self, "Notice", self._state.notice)

    def _on_camera_frame(self, frame) -> None:
        if self._cv2_module is None:
            try:
                import cv2  # type: ignore
            except Exception:
                return
            self._cv2_module = cv2

        rgb = self._cv2_module.cvtColor(frame, self._cv2_module.COLOR_BGR2RGB)
        height, width, channel = rgb.shape
        image = QImage(rgb.data, width, height, channel * width, QImage.Format_RGB888)
        pixmap = QPixmap.fromImage(image.copy())
        target_size = self._camera_display.size()
        if target_size.width() and target_size.height():
            pixmap = pixmap.scaled(target_size, Qt.KeepAspectRatio, Qt.SmoothTransformation)
        self._camera_display.setPixmap(pixmap)


class KeyClientApp(QMainWindow):  # pragma: no cover - requires Qt event loop
    def __init__(self, config: Optional[ClientConfig] = None) -> None:
        super().__init__()

        self._config = config or ClientConfig()
        self._camera_config = CameraConfig()
        self._style = StyleConfig()

        self._bridge = StateBridge()
        self._loop_thread = LoopThread()
        self._console = KeyConsole(
            self._config,
            decoder_factory=lambda: CameraDecoder(
                self._camera_config, viewport=self._bridge.frame_captured.emit
            ),
        )
        self._console.state.subscribe(self._bridge.changed.emit)

        self._setup_ui()
        self._loop_thread.start()
        self._loop_thread.call(self._console.load)

    def _setup_ui(self) -> None:
        self.setWindowTitle(f"{self._config.app_name} v{self._config.app_version}")
        self.setGeometry(100, 100, 1100, 850)
        self.setMinimumSize(900, 700)

        try:
            self.setWindowIcon(create_icon())
        except RuntimeError:
            pass

        self._apply_stylesheet()
        self._main_window = MainWindow(
            self._console, self._loop_thread, self._bridge, self._style
        )
        self.setCentralWidget(self._main_window)
        self.show()

    def _apply_stylesheet(self) -> None:
        style = self._style
        self.setStyleSheet(
            f"""
            QMainWindow {{ background: {style.bg_primary}; }}
            QWidget {{ color: {style.fg_primary}; font-family: {style.font_family}; font-size: {style.font_size}px; }}
            QTabWidget::pane {{ border: none; }}
            QTabBar::tab {{ background: {style.bg_secondary}; padding: 10px 16px; border: 1px solid {style.border}; border-bottom: none; border-top-left-radius: 5px; border-top-right-radius: 5px; }}
            QTabBar::tab:selected {{ background: {style.bg_tertiary}; color: {style.fg_secondary}; }}
            QGroupBox {{ font-weight: bold; border: 1px solid {style.border}; border-radius: 8px; margin-top: 1ex; padding: 12px; background: {style.bg_secondary}; }}
            QLineEdit, QTextEdit, QTextBrowser, QListWidget {{ background: {style.bg_primary}; color: {style.fg_secondary}; border: 1px solid {style.border}; border-radius: 4px; padding: 6px; }}
            QLineEdit:focus, QTextEdit:focus {{ border: 1px solid {style.accent_primary}; }}
            QPushButton {{ background: {style.accent_secondary}; color: {style.fg_secondary}; border: none; padding: 10px 16px; border-radius: 4px; font-weight: bold; }}
            QPushButton#AccentButton {{ background: {style.accent_primary}; color: {style.bg_primary}; }}
            QPushButton:hover {{ background: #81A1C1; }}
            #SubtleLabel {{ color: #81A1C1; }}
            #WarningLabel {{ background: {style.warning}; color: {style.bg_primary}; padding: 8px; border-radius: 4px; }}
            #SuccessLabel {{ background: {style.success}; color: {style.bg_primary}; padding: 8px; border-radius: 4px; }}
            #ChecksumLabel {{ font-family: {style.font_mono}; color: #EBCB8B; font-weight: bold; }}
            #qrDisplayLabel {{ border: 2px dashed {style.border}; background: {style.bg_primary}; border-radius: 4px; }}
            """
        )

    def closeEvent(self, event) -> None:  # type: ignore[override]
        future = self._loop_thread.call(self._console.aclose)
        try:
            future.result(timeout=3)
        except Exception as exc:
            log.warning("Shutdown did not complete cleanly: %s", exc)
        self._loop_thread.shutdown()
        event.accept()


def run(config: Optional[ClientConfig] = None) -> int:  # pragma: no cover - requires Qt event loop
    app = QApplication.instance() or QApplication([])
    app.setApplicationName("PGP QR Client")
    window = KeyClientApp(config)
    return app.exec_()


__all__ = ["run", "KeyClientApp"]
