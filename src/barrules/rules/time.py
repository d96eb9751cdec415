"""Time rules: anchored (TimeRule) and clock-aligned (AlignedTimeRule).

TimeRule measures the bar's duration from its first event.  AlignedTimeRule
fixes bar edges to multiples of the duration from an origin — a 5m bar
covers :00-:05, :05-:10, etc. — so independent instances watching the same
stream always agree on where bars start and end.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

from barrules.errors import ConfigurationError, OrderingViolation
from barrules.models import Decision, Event
from barrules.rules.base import ZERO, AggregationRule

logger = logging.getLogger(__name__)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

_UNITS = (
    ("d", timedelta(days=1)),
    ("h", timedelta(hours=1)),
    ("m", timedelta(minutes=1)),
    ("s", timedelta(seconds=1)),
    ("ms", timedelta(milliseconds=1)),
    ("us", timedelta(microseconds=1)),
)


def duration_label(duration: timedelta) -> str:
    """Shortest exact label for a duration: 5m, 90s, 1h, 250ms."""
    for suffix, unit in _UNITS:
        if duration % unit == timedelta(0):
            return f"{duration // unit}{suffix}"
    raise AssertionError("timedelta resolution is one microsecond")


def _check_duration(duration: timedelta) -> timedelta:
    if not isinstance(duration, timedelta):
        raise ConfigurationError(f"Duration must be a timedelta, got {type(duration).__name__}")
    if duration <= timedelta(0):
        raise ConfigurationError(f"Duration must be positive, got {duration}")
    return duration


class TimeRule(AggregationRule):
    """Close a bar once `duration` has elapsed since its first event.

    The event that reaches anchor + duration closes the bar it is part of
    (the boundary is inclusive of the triggering event); the next event
    anchors a new bar.
    """

    def __init__(self, duration: timedelta) -> None:
        super().__init__()
        self._duration = _check_duration(duration)

    @property
    def duration(self) -> timedelta:
        return self._duration

    @property
    def label(self) -> str:
        return f"time_{duration_label(self._duration)}"

    def evaluate(self, event: Event) -> list[Decision]:
        if self._anchor is None:
            self._open(event, event.volume)
            return [Decision.keep_open(event.volume)]

        if event.timestamp < self._anchor:
            raise OrderingViolation(event.timestamp, self._anchor)

        if event.timestamp - self._anchor >= self._duration:
            start = self._anchor
            logger.debug(
                "%s closing bar %s after %d events",
                self.label,
                start.isoformat(),
                self._event_count + 1,
            )
            self._clear()
            return [
                Decision.close(
                    event.volume,
                    window_start=start,
                    window_end=start + self._duration,
                )
            ]

        self._add(event, event.volume)
        return [Decision.keep_open(event.volume)]

    def _closes_at(self) -> datetime | None:
        if self._anchor is None:
            return None
        return self._anchor + self._duration


class AlignedTimeRule(AggregationRule):
    """Close bars on fixed clock boundaries: origin + k * duration.

    An event at or past the open window's end closes that window *ahead*
    of itself (it is not part of the closed bar) and opens the window it
    falls in.  Windows skipped entirely during a data gap are not
    reported; only the window that actually held events is closed.
    """

    def __init__(self, duration: timedelta, origin: datetime = EPOCH) -> None:
        super().__init__()
        self._duration = _check_duration(duration)
        if origin.tzinfo is None or origin.utcoffset() is None:
            raise ConfigurationError(
                f"Alignment origin must be timezone-aware, got {origin.isoformat()}"
            )
        # Boundaries step in elapsed time, not local wall-clock time
        self._origin = origin.astimezone(UTC)
        self._window: tuple[datetime, datetime] | None = None

    @property
    def duration(self) -> timedelta:
        return self._duration

    @property
    def origin(self) -> datetime:
        return self._origin

    @property
    def label(self) -> str:
        return f"aligned_{duration_label(self._duration)}"

    def window_for(self, ts: datetime) -> tuple[datetime, datetime]:
        """Return the [start, end) window containing ts."""
        k = (ts - self._origin) // self._duration
        start = self._origin + k * self._duration
        return start, start + self._duration

    def evaluate(self, event: Event) -> list[Decision]:
        if self._anchor is None:
            self._open(event, event.volume)
            self._window = self.window_for(event.timestamp)
            return [Decision.keep_open(event.volume)]

        if event.timestamp < self._anchor:
            raise OrderingViolation(event.timestamp, self._anchor)

        assert self._window is not None
        start, end = self._window
        if event.timestamp < end:
            self._add(event, event.volume)
            return [Decision.keep_open(event.volume)]

        skipped = (event.timestamp - end) // self._duration
        if skipped:
            logger.debug(
                "%s gap after %s: %d empty windows not reported",
                self.label,
                end.isoformat(),
                skipped,
            )
        logger.debug("%s closing window %s", self.label, start.isoformat())

        self._open(event, event.volume)
        self._window = self.window_for(event.timestamp)
        return [
            Decision.close(ZERO, includes_event=False, window_start=start, window_end=end),
            Decision.keep_open(event.volume),
        ]

    def _clear(self) -> None:
        super()._clear()
        self._window = None

    def _closes_at(self) -> datetime | None:
        return self._window[1] if self._window is not None else None
