"""Entry point for the prayer times tray application."""
from __future__ import annotations

import logging
import queue
import sys
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, Optional

try:  # Prefer PyQt5, fall back to Qt for Python if available
    from PyQt5 import QtCore, QtWidgets  # type: ignore
except Exception:  # pragma: no cover - fallback only used when PyQt5 missing
    try:
        from PySide2 import QtCore, QtWidgets  # type: ignore
    except Exception:
        from PySide6 import QtCore, QtWidgets  # type: ignore

try:  # Compatibility alias for Qt signal and slot decorators
    Signal = QtCore.pyqtSignal  # type: ignore[attr-defined]
    Slot = QtCore.pyqtSlot  # type: ignore[attr-defined]
except AttributeError:  # pragma: no cover - PySide compatibility
    Signal = QtCore.Signal  # type: ignore[attr-defined]
    Slot = QtCore.Slot  # type: ignore[attr-defined]

from controller import PrayTimeController, build_controller
from countdown import COUNTING, CountdownState, PrayerEvent
from notifier import Notifier
from prayer_times import system_timezone
from scheduler import PrayerScheduler
from settings import load_settings
from ui import PrayerPanel

APP_ROOT = Path(__file__).parent
CONFIG_PATH = APP_ROOT / "config.json"

LOGGER = logging.getLogger(__name__)


class _MainThreadRelay(QtCore.QObject):
    """Carries worker and scheduler callbacks onto the Qt main thread."""

    display_changed = Signal(object)
    panel_message = Signal(object)
    error_raised = Signal(str)
    info_raised = Signal(str)


class PrayTimeApp(QtWidgets.QApplication):
    """Hosts the panel, the tray status indicator and the background jobs."""

    def __init__(self, argv: list[str]) -> None:
        super().__init__(argv)
        self.setApplicationName("Prayer Times")
        self.setQuitOnLastWindowClosed(False)

        self.settings = load_settings(CONFIG_PATH)
        logging.getLogger().setLevel(self.settings.log_level)
        LOGGER.debug("Settings: %s", self.settings)

        self._executor = ThreadPoolExecutor(max_workers=2)
        self._events: "queue.Queue[PrayerEvent]" = queue.Queue()
        self._relay = _MainThreadRelay()

        self.window = PrayerPanel()
        self.tray_icon: Optional[QtWidgets.QSystemTrayIcon] = None
        self._setup_tray_icon()
        self.notifier = Notifier(self._events, self._show_notification)

        timezone = getattr(system_timezone(), "zone", "UTC")
        self.controller: PrayTimeController = build_controller(
            self.settings,
            send_to_panel=self._relay.panel_message.emit,
            events=self._events,
            on_display=self._relay.display_changed.emit,
            on_error=self._relay.error_raised.emit,
            on_info=self._relay.info_raised.emit,
            scheduler=PrayerScheduler(timezone),
        )
        self.controller.panel.on_refresh(self.refresh_prayer_times)
        self.controller.set_auto_refresh(lambda: self._submit(self.controller.load))

        self._relay.display_changed.connect(self._on_display)  # type: ignore
        self._relay.panel_message.connect(self.window.receive)  # type: ignore
        self._relay.error_raised.connect(self._on_error)  # type: ignore
        self._relay.info_raised.connect(self._on_info)  # type: ignore
        self.window.message_sent.connect(self.controller.panel.handle)  # type: ignore

        self.aboutToQuit.connect(self._cleanup)  # type: ignore

        self.window.show()
        self.controller.start()
        QtCore.QTimer.singleShot(100, lambda: self._submit(self.controller.load))

    # ------------------------------------------------------------------
    def refresh_prayer_times(self) -> None:
        self.window.set_status("Updating prayer times...")
        self._submit(lambda: self.controller.refresh(user_initiated=True))

    def clear_cache_and_refresh(self) -> None:
        self.window.set_status("Clearing cache...")
        self._submit(self.controller.clear_cache_and_refresh)

    @Slot(object)
    def _on_display(self, state: CountdownState) -> None:
        self.window.set_status(state.text)
        self.window.highlight(state.next_prayer.name if state.kind == COUNTING and state.next_prayer else None)
        if self.tray_icon:
            self.tray_icon.setToolTip(state.text)
        self.notifier.drain()

    @Slot(str)
    def _on_error(self, message: str) -> None:
        LOGGER.warning("User-visible error: %s", message)
        self.window.show_notice(message)
        if self.tray_icon:
            self.tray_icon.showMessage("Prayer Times", message, QtWidgets.QSystemTrayIcon.Warning, 5000)

    @Slot(str)
    def _on_info(self, message: str) -> None:
        self.window.show_notice(message)
        if self.tray_icon:
            self.tray_icon.showMessage("Prayer Times", message, QtWidgets.QSystemTrayIcon.Information, 3000)

    def _show_notification(self, title: str, body: str) -> None:
        if self.tray_icon:
            self.tray_icon.showMessage(title, body, QtWidgets.QSystemTrayIcon.Information, 15000)
        else:
            self.window.show_notice(f"{title}: {body}")

    # -- System tray ----------------------------------------------------
    def _setup_tray_icon(self) -> None:
        if not QtWidgets.QSystemTrayIcon.isSystemTrayAvailable():
            LOGGER.warning("System tray not available on this system")
            return

        icon = self.style().standardIcon(QtWidgets.QStyle.SP_ComputerIcon)
        tray = QtWidgets.QSystemTrayIcon(icon, self)
        tray.activated.connect(self._on_tray_activated)  # type: ignore

        menu = QtWidgets.QMenu()
        show_action = menu.addAction("Show Window")
        show_action.triggered.connect(self._show_main_window)  # type: ignore
        menu.addSeparator()
        refresh_action = menu.addAction("Refresh Prayer Times")
        refresh_action.triggered.connect(self.refresh_prayer_times)  # type: ignore
        clear_action = menu.addAction("Clear Cache and Refresh")
        clear_action.triggered.connect(self.clear_cache_and_refresh)  # type: ignore
        menu.addSeparator()
        quit_action = menu.addAction("Quit")
        quit_action.triggered.connect(self.quit)  # type: ignore

        tray.setContextMenu(menu)
        tray.setToolTip("Loading prayer times...")
        tray.show()

        self.tray_icon = tray
        self._tray_menu = menu

    def _on_tray_activated(self, reason: QtWidgets.QSystemTrayIcon.ActivationReason) -> None:
        if reason in (QtWidgets.QSystemTrayIcon.Trigger, QtWidgets.QSystemTrayIcon.DoubleClick):
            self._show_main_window()

    def _show_main_window(self) -> None:
        self.window.showNormal()
        self.window.raise_()
        self.window.activateWindow()

    # ------------------------------------------------------------------
    def _submit(self, func: Callable[[], Any]) -> None:
        LOGGER.debug("Submitting background task %s", getattr(func, "__name__", func))
        future = self._executor.submit(func)

        def _done(future_result: Future) -> None:
            try:
                future_result.result()
            except Exception as exc:
                LOGGER.exception("Background task %s raised an exception", getattr(func, "__name__", func), exc_info=exc)

        future.add_done_callback(_done)

    def _cleanup(self) -> None:
        self.controller.shutdown()
        self._executor.shutdown(wait=False)
        if self.tray_icon:
            self.tray_icon.hide()


def main() -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    app = PrayTimeApp(sys.argv)
    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
