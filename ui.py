"""Qt panel that lists today's prayer times and the running countdown."""
from __future__ import annotations

from typing import Any, Dict, Optional

try:  # Prefer PyQt5, fall back to Qt for Python if available
    from PyQt5 import QtCore, QtGui, QtWidgets  # type: ignore
except Exception:  # pragma: no cover - fallback only used when PyQt5 missing
    try:
        from PySide2 import QtCore, QtGui, QtWidgets  # type: ignore
    except Exception:
        from PySide6 import QtCore, QtGui, QtWidgets  # type: ignore

try:  # Compatibility alias for Qt signal declarations
    Signal = QtCore.pyqtSignal  # type: ignore[attr-defined]
except AttributeError:  # pragma: no cover - PySide compatibility
    Signal = QtCore.Signal  # type: ignore[attr-defined]

from panel import READY, REFRESH, UPDATE_PRAYER_TIMES
from prayer_times import PRAYER_NAMES, SENTINEL_TIME

HIGHLIGHT_STYLE = "background-color: #dcfce7; border-radius: 6px;"


class PrayerPanel(QtWidgets.QWidget):
    """Renders ``updatePrayerTimes`` messages and reports ``ready``/``refresh``."""

    message_sent = Signal(object)

    def __init__(self, parent: Optional[QtWidgets.QWidget] = None) -> None:
        super().__init__(parent)
        self.setWindowTitle("Prayer Times")
        self.setMinimumWidth(280)
        self._announced_ready = False
        self._highlighted: Optional[str] = None

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(16, 16, 16, 16)
        layout.setSpacing(8)

        self.date_label = QtWidgets.QLabel("Loading...")
        date_font = QtGui.QFont(self.date_label.font())
        date_font.setPointSize(date_font.pointSize() + 2)
        date_font.setBold(True)
        self.date_label.setFont(date_font)
        layout.addWidget(self.date_label)

        grid = QtWidgets.QGridLayout()
        grid.setHorizontalSpacing(24)
        self.time_labels: Dict[str, QtWidgets.QLabel] = {}
        self.row_labels: Dict[str, QtWidgets.QLabel] = {}
        for row, name in enumerate(PRAYER_NAMES):
            name_label = QtWidgets.QLabel(name)
            time_label = QtWidgets.QLabel(SENTINEL_TIME)
            time_label.setAlignment(QtCore.Qt.AlignRight | QtCore.Qt.AlignVCenter)
            grid.addWidget(name_label, row, 0)
            grid.addWidget(time_label, row, 1)
            self.row_labels[name] = name_label
            self.time_labels[name] = time_label
        layout.addLayout(grid)

        self.status_label = QtWidgets.QLabel("")
        self.status_label.setWordWrap(True)
        layout.addWidget(self.status_label)

        self.notice_label = QtWidgets.QLabel("")
        self.notice_label.setWordWrap(True)
        self.notice_label.setStyleSheet("color: #b91c1c;")
        self.notice_label.hide()
        layout.addWidget(self.notice_label)

        self.refresh_button = QtWidgets.QPushButton("Refresh")
        self.refresh_button.clicked.connect(self._request_refresh)  # type: ignore
        layout.addWidget(self.refresh_button)

    def showEvent(self, event: QtGui.QShowEvent) -> None:
        super().showEvent(event)
        self.announce_ready()

    def announce_ready(self) -> None:
        if self._announced_ready:
            return
        self._announced_ready = True
        self.message_sent.emit({"command": READY})

    def receive(self, message: Dict[str, Any]) -> None:
        if message.get("command") != UPDATE_PRAYER_TIMES:
            return
        payload = message.get("prayerTimes") or {}
        date_info = payload.get("date") or {}
        timings = payload.get("timings") or {}

        weekday = date_info.get("weekday", "")
        iso_date = date_info.get("iso_date", "")
        self.date_label.setText(f"{weekday}, {iso_date}".strip(", "))
        for name, label in self.time_labels.items():
            label.setText(str(timings.get(name, SENTINEL_TIME)))

        if payload.get("succeeded"):
            self.clear_notice()
        else:
            self.show_notice("Prayer times are unavailable right now.")

    def set_status(self, text: str) -> None:
        self.status_label.setText(text)

    def highlight(self, prayer_name: Optional[str]) -> None:
        if prayer_name == self._highlighted:
            return
        for name, label in self.row_labels.items():
            style = HIGHLIGHT_STYLE if name == prayer_name else ""
            label.setStyleSheet(style)
            self.time_labels[name].setStyleSheet(style)
        self._highlighted = prayer_name

    def show_notice(self, text: str) -> None:
        self.notice_label.setText(text)
        self.notice_label.show()

    def clear_notice(self) -> None:
        self.notice_label.clear()
        self.notice_label.hide()

    def _request_refresh(self) -> None:
        self.message_sent.emit({"command": REFRESH})
