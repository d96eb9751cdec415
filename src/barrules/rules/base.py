"""Aggregation rule contract and the open-bar state snapshot.

A rule owns the state of exactly one open bar and decides, event by event,
whether the bar continues, closes, or closes with part of the event's
volume carried into the next bar.  Rules never build bars themselves —
that is the driver's job (see barrules.bars).
"""

from abc import ABC, abstractmethod
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from barrules.models import Decision, Event

ZERO = Decimal("0")


class RuleState(BaseModel):
    """Read-only view of a rule's open bar."""

    is_open: bool = Field(default=False, description="Whether a bar is currently open")
    anchor: datetime | None = Field(
        default=None, description="Timestamp of the first event in the open bar"
    )
    closes_at: datetime | None = Field(
        default=None, description="Time boundary at which the open bar closes (time rules)"
    )
    accumulated: Decimal = Field(default=ZERO, description="Volume accumulated in the open bar")
    event_count: int = Field(default=0, description="Events that contributed to the open bar")
    last_timestamp: datetime | None = Field(
        default=None, description="Timestamp of the latest event in the open bar"
    )

    model_config = {"frozen": True}


class AggregationRule(ABC):
    """Abstract base class for all aggregation rules.

    Rules are stateful and not safe for concurrent use — each instance
    aggregates exactly one logical stream.  Subclasses implement
    evaluate() and extend _clear() with their own boundary state.
    """

    def __init__(self) -> None:
        self._anchor: datetime | None = None
        self._accumulated: Decimal = ZERO
        self._event_count: int = 0
        self._last_timestamp: datetime | None = None

    @property
    @abstractmethod
    def label(self) -> str:
        """Spec string for this rule, e.g. 'time_1m', 'volume_100'."""
        ...

    @abstractmethod
    def evaluate(self, event: Event) -> list[Decision]:
        """Consume one event and return the decisions it produces.

        Time rules return one decision per call, except when a time window
        ends (AlignedTimeRule emits the close ahead of the event, then a
        continue for it).  VolumeRule may return several closing decisions
        when one event spans more than one bar.  State is fully updated
        by the time this returns.
        """
        ...

    def reset(self) -> None:
        """Discard the open bar. Safe to call any number of times."""
        self._clear()

    def current_state(self) -> RuleState:
        return RuleState(
            is_open=self._anchor is not None,
            anchor=self._anchor,
            closes_at=self._closes_at(),
            accumulated=self._accumulated,
            event_count=self._event_count,
            last_timestamp=self._last_timestamp,
        )

    def _clear(self) -> None:
        self._anchor = None
        self._accumulated = ZERO
        self._event_count = 0
        self._last_timestamp = None

    def _open(self, event: Event, volume: Decimal) -> None:
        """Start a new bar with the event as its first contribution."""
        self._anchor = event.timestamp
        self._accumulated = volume
        self._event_count = 1
        self._last_timestamp = event.timestamp

    def _add(self, event: Event, volume: Decimal) -> None:
        self._accumulated += volume
        self._event_count += 1
        self._last_timestamp = event.timestamp

    def _closes_at(self) -> datetime | None:
        """Time boundary of the open bar. None for rules without one."""
        return None

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.label!r})"
