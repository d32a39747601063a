import pytest

from app.services.engagement import (
    InvalidPlayerEvent,
    WatchTracker,
    completion_percent,
    is_completed,
    parse_player_batch,
)


def test_ticks_count_only_while_playing_and_visible():
    tracker = WatchTracker(sync_seconds=5)

    tracker.tick()
    assert tracker.watch_time == 0

    tracker.play()
    tracker.tick()
    tracker.tick()
    assert tracker.watch_time == 2

    tracker.set_visibility(False)
    tracker.tick()
    assert tracker.watch_time == 2


def test_tick_flushes_once_sync_threshold_is_reached():
    tracker = WatchTracker(10, sync_seconds=5, playing=True)

    syncs = [tracker.tick() for _ in range(5)]

    assert syncs[:4] == [None, None, None, None]
    assert syncs[4].watch_time == 15
    assert syncs[4].reason == "tick"
    assert tracker.unsynced_seconds == 0


def test_pause_flushes_pending_seconds():
    tracker = WatchTracker(sync_seconds=5, playing=True)
    tracker.tick()
    tracker.tick()

    sync = tracker.pause()

    assert sync is not None
    assert sync.reason == "pause"
    assert sync.watch_time == 2
    assert tracker.pause() is None


def test_hiding_tab_pauses_and_flushes():
    tracker = WatchTracker(sync_seconds=5, playing=True)
    tracker.tick(3)

    sync = tracker.set_visibility(False)

    assert sync is not None and sync.reason == "hidden"
    assert tracker.playing is False
    tracker.set_visibility(True)
    tracker.tick()
    assert tracker.watch_time == 3


def test_initially_hidden_player_does_not_count():
    tracker = WatchTracker(playing=True, visible=False)
    tracker.tick()
    assert tracker.watch_time == 0


def test_pause_without_new_seconds_does_not_sync():
    tracker = WatchTracker(7, playing=True)
    assert tracker.pause() is None


def test_ended_marks_completed_and_rounds_duration_up():
    tracker = WatchTracker(30, playing=True)

    sync = tracker.ended(90.2)

    assert sync.completed is True
    assert sync.reason == "ended"
    assert tracker.watch_time == 91


def test_ended_never_reduces_watch_time():
    tracker = WatchTracker(120, playing=True)
    tracker.ended(60)
    assert tracker.watch_time == 120


def test_ended_with_unknown_duration_still_completes():
    tracker = WatchTracker(12, playing=True)
    sync = tracker.ended(None)
    assert sync.completed is True
    assert sync.watch_time == 12


@pytest.mark.parametrize("seconds", [0, 11, -1, 1.5, True, "2"])
def test_tick_rejects_invalid_seconds(seconds):
    tracker = WatchTracker(playing=True)
    with pytest.raises(InvalidPlayerEvent):
        tracker.tick(seconds)


def test_replay_applies_events_in_order():
    tracker = WatchTracker(sync_seconds=3)
    events = [
        {"type": "play"},
        {"type": "tick"},
        {"type": "tick"},
        {"type": "hidden"},
        {"type": "tick"},
        {"type": "visible"},
        {"type": "play"},
        {"type": "tick", "seconds": 2},
        {"type": "pause"},
    ]

    syncs = tracker.replay(events)

    assert tracker.watch_time == 4
    assert [sync.reason for sync in syncs] == ["hidden", "pause"]


def test_parse_player_batch_validates_shape():
    playing, visible, events = parse_player_batch(
        {"playing": True, "visible": False, "events": [{"type": "tick"}]}
    )
    assert playing is True
    assert visible is False
    assert events == [{"type": "tick"}]

    with pytest.raises(InvalidPlayerEvent):
        parse_player_batch(None)
    with pytest.raises(InvalidPlayerEvent):
        parse_player_batch({"events": "tick"})
    with pytest.raises(InvalidPlayerEvent):
        parse_player_batch({"events": [{"type": "rewind"}]})
    with pytest.raises(InvalidPlayerEvent):
        parse_player_batch({"playing": "yes", "events": []})


def test_is_completed():
    assert is_completed(100, 100)
    assert not is_completed(99, 100)
    assert not is_completed(50, 0)
    assert is_completed(0, 0, ended=True)


@pytest.mark.parametrize(
    ("watch_time", "duration", "expected"),
    [(0, 100, 0), (45, 90, 50), (1, 200, 1), (5, 1000, 1), (250, 100, 100), (10, 0, None)],
)
def test_completion_percent(watch_time, duration, expected):
    assert completion_percent(watch_time, duration) == expected


def test_ended_in_hidden_tab_earns_no_credit():
    tracker = WatchTracker(sync_seconds=5)
    tracker.play()
    tracker.tick()
    tracker.set_visibility(False)

    sync = tracker.ended(600)

    assert tracker.watch_time == 1
    assert tracker.completed is False
    assert sync is None


def test_ended_while_paused_earns_no_credit():
    tracker = WatchTracker(30)
    assert tracker.ended(600) is None
    assert tracker.watch_time == 30
    assert tracker.completed is False
