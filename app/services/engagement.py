"""Watch-time accumulation for the lesson video player.

The browser batches player events (play, pause, tick, visibility changes,
ended) and posts them to the progress endpoint. The server replays each
batch through a :class:`WatchTracker` seeded with the stored watch time, so
only seconds spent playing in a visible tab are counted.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

DEFAULT_SYNC_SECONDS = 5
MAX_TICK_SECONDS = 10
MAX_EVENTS_PER_BATCH = 600

EVENT_TYPES = {"play", "pause", "tick", "hidden", "visible", "ended"}


class InvalidPlayerEvent(ValueError):
    """Raised when a player event or batch is malformed."""


@dataclass(slots=True)
class ProgressSync:
    watch_time: int
    reason: str
    completed: bool = False


class WatchTracker:
    """Accumulate watch time while the video plays in a visible tab.

    Every call that changes the persisted state returns a :class:`ProgressSync`;
    calls that do not need a write return None. Ticks only sync once the
    unsynced delta reaches ``sync_seconds``; pausing, hiding the tab and
    reaching the end always flush.
    """

    def __init__(
        self,
        initial_watch_time: int = 0,
        *,
        sync_seconds: int = DEFAULT_SYNC_SECONDS,
        playing: bool = False,
        visible: bool = True,
    ) -> None:
        if initial_watch_time < 0:
            raise ValueError("initial_watch_time must be non-negative.")
        self.watch_time = int(initial_watch_time)
        self.last_synced = self.watch_time
        self.sync_seconds = max(1, int(sync_seconds))
        self.playing = playing and visible
        self.visible = visible
        self.completed = False
        self.syncs: list[ProgressSync] = []

    @property
    def unsynced_seconds(self) -> int:
        return self.watch_time - self.last_synced

    def play(self) -> None:
        self.playing = True

    def pause(self) -> Optional[ProgressSync]:
        if not self.playing:
            return None
        self.playing = False
        return self._flush("pause")

    def set_visibility(self, visible: bool) -> Optional[ProgressSync]:
        self.visible = visible
        if not visible and self.playing:
            # Hiding the tab pauses the video.
            self.playing = False
            return self._flush("hidden")
        return None

    def tick(self, seconds: int = 1) -> Optional[ProgressSync]:
        if isinstance(seconds, bool) or not isinstance(seconds, int):
            raise InvalidPlayerEvent("tick seconds must be an integer.")
        if seconds < 1 or seconds > MAX_TICK_SECONDS:
            raise InvalidPlayerEvent(f"tick seconds must be between 1 and {MAX_TICK_SECONDS}.")
        if not (self.playing and self.visible):
            return None
        self.watch_time += seconds
        if self.unsynced_seconds >= self.sync_seconds:
            return self._flush("tick")
        return None

    def ended(self, duration: Optional[float] = None) -> Optional[ProgressSync]:
        """Credit the full duration and mark completion.

        Only an end reached while playing in a visible tab counts; otherwise
        pending seconds are flushed without credit.
        """
        watched = self.playing and self.visible
        self.playing = False
        if not watched:
            return self._flush("ended")
        if duration is not None and duration > 0:
            self.watch_time = max(self.watch_time, math.ceil(duration))
        self.completed = True
        return self._flush("ended", force=True)

    def apply(self, event: Mapping[str, object]) -> Optional[ProgressSync]:
        event_type = event.get("type")
        if event_type == "play":
            self.play()
            return None
        if event_type == "pause":
            return self.pause()
        if event_type == "tick":
            return self.tick(event.get("seconds", 1))  # type: ignore[arg-type]
        if event_type == "hidden":
            return self.set_visibility(False)
        if event_type == "visible":
            return self.set_visibility(True)
        if event_type == "ended":
            duration = event.get("duration")
            if duration is not None and not isinstance(duration, (int, float)):
                raise InvalidPlayerEvent("ended duration must be a number.")
            return self.ended(duration)  # type: ignore[arg-type]
        raise InvalidPlayerEvent(f"Unknown player event: {event_type!r}")

    def replay(self, events: Iterable[Mapping[str, object]]) -> list[ProgressSync]:
        return [sync for sync in (self.apply(event) for event in events) if sync is not None]

    def _flush(self, reason: str, *, force: bool = False) -> Optional[ProgressSync]:
        if not force and self.watch_time == self.last_synced:
            return None
        self.last_synced = self.watch_time
        sync = ProgressSync(watch_time=self.watch_time, reason=reason, completed=self.completed)
        self.syncs.append(sync)
        return sync


def parse_player_batch(payload: object) -> tuple[bool, bool, list[dict[str, object]]]:
    """Validate a posted batch and return ``(playing, visible, events)``."""
    if not isinstance(payload, Mapping):
        raise InvalidPlayerEvent("Payload must be a JSON object.")

    playing = payload.get("playing", False)
    visible = payload.get("visible", True)
    if not isinstance(playing, bool) or not isinstance(visible, bool):
        raise InvalidPlayerEvent("playing and visible must be booleans.")

    events = payload.get("events")
    if not isinstance(events, list):
        raise InvalidPlayerEvent("events must be a list.")
    if len(events) > MAX_EVENTS_PER_BATCH:
        raise InvalidPlayerEvent(f"At most {MAX_EVENTS_PER_BATCH} events per batch.")

    parsed: list[dict[str, object]] = []
    for event in events:
        if not isinstance(event, Mapping) or event.get("type") not in EVENT_TYPES:
            raise InvalidPlayerEvent("Each event needs a known type.")
        parsed.append(dict(event))
    return playing, visible, parsed


def is_completed(watch_time: int, duration: int, *, ended: bool = False) -> bool:
    if ended:
        return True
    return duration > 0 and watch_time >= duration


def completion_percent(watch_time: int, duration: int) -> Optional[int]:
    """Percentage watched, capped at 100; None when the duration is unknown."""
    if duration <= 0:
        return None
    return min(100, math.floor(watch_time / duration * 100 + 0.5))
