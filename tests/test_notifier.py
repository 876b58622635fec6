import queue

from countdown import ARRIVED, PrayerEvent
from notifier import Notifier, message_for


def test_approaching_message():
    title, body = message_for(PrayerEvent(prayer="Maghrib", minutes=10, day="2026-10-19"))
    assert "Maghrib" in title and "10" in title
    assert body == "Maghrib prayer starts in 10 minutes."


def test_arrival_message():
    title, body = message_for(PrayerEvent(prayer="Isha", minutes=0, day="2026-10-19", kind=ARRIVED))
    assert "Time to Pray" in title
    assert "Isha" in body


def test_drain_shows_events_in_order():
    events = queue.Queue()
    shown = []
    events.put(PrayerEvent(prayer="Asr", minutes=30, day="2026-10-19"))
    events.put(PrayerEvent(prayer="Asr", minutes=10, day="2026-10-19"))

    assert Notifier(events, lambda title, body: shown.append(title)).drain() == 2
    assert ["30" in title for title in shown] == [True, False]
    assert events.empty()


def test_drain_on_empty_channel():
    assert Notifier(queue.Queue(), lambda title, body: None).drain() == 0


def test_failing_display_does_not_stop_draining():
    events = queue.Queue()
    events.put(PrayerEvent(prayer="Fajr", minutes=30, day="2026-10-19"))
    events.put(PrayerEvent(prayer="Fajr", minutes=10, day="2026-10-19"))
    calls = []

    def show(title, body):
        calls.append(title)
        if len(calls) == 1:
            raise RuntimeError("tray unavailable")

    assert Notifier(events, show).drain() == 1
    assert len(calls) == 2
