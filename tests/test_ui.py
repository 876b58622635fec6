import os

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from datetime import date, datetime

import pytest
import pytz

try:
    from PyQt5 import QtWidgets
except Exception:  # pragma: no cover - fallback path
    try:
        from PySide2 import QtWidgets
    except Exception:  # pragma: no cover - fallback path
        from PySide6 import QtWidgets

from conftest import aladhan_payload
from prayer_times import parse_prayer_response, placeholder_result
from ui import PrayerPanel


@pytest.fixture(scope="module")
def qt_app():
    app = QtWidgets.QApplication.instance()
    if app is None:
        app = QtWidgets.QApplication([])
    yield app


def test_ready_is_announced_once_on_show(qt_app):
    panel = PrayerPanel()
    sent = []
    panel.message_sent.connect(sent.append)

    panel.show()
    panel.hide()
    panel.show()
    qt_app.processEvents()

    assert sent == [{"command": "ready"}]
    panel.close()


def test_update_message_renders_timings(qt_app):
    panel = PrayerPanel()
    result = parse_prayer_response(aladhan_payload(), date(2026, 10, 19))

    panel.receive({"command": "updatePrayerTimes", "prayerTimes": result.to_dict()})

    assert panel.time_labels["Fajr"].text() == "05:00"
    assert panel.time_labels["Isha"].text() == "21:30"
    assert panel.date_label.text() == "Monday, 2026-10-19"
    assert panel.notice_label.isHidden()


def test_placeholder_shows_notice(qt_app):
    panel = PrayerPanel()
    result = placeholder_result(pytz.UTC.localize(datetime(2026, 10, 19, 9, 0)))

    panel.receive({"command": "updatePrayerTimes", "prayerTimes": result.to_dict()})

    assert panel.time_labels["Asr"].text() == "--:--"
    assert not panel.notice_label.isHidden()


def test_refresh_button_requests_refresh(qt_app):
    panel = PrayerPanel()
    sent = []
    panel.message_sent.connect(sent.append)

    panel.refresh_button.click()

    assert sent == [{"command": "refresh"}]


def test_status_and_highlight(qt_app):
    panel = PrayerPanel()
    panel.set_status("Asr: 16:30 (2h 30m)")
    panel.highlight("Asr")

    assert panel.status_label.text() == "Asr: 16:30 (2h 30m)"
    assert panel.row_labels["Asr"].styleSheet() != ""
    assert panel.row_labels["Fajr"].styleSheet() == ""

    panel.highlight(None)
    assert panel.row_labels["Asr"].styleSheet() == ""
