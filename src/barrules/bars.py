"""Bar model, accumulator, and the driver that applies rule decisions.

Every rule produces the same output schema (OHLCV + auxiliary info); the
rules only differ in where bars end.  BarDriver owns the accumulation and
turns each rule's decision stream into finished bars.
"""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta
from decimal import Decimal

from pydantic import BaseModel, Field

from barrules.errors import OrderingViolation
from barrules.models import Decision, DecisionKind, Event
from barrules.rules.base import AggregationRule

logger = logging.getLogger(__name__)


class Bar(BaseModel):
    """A single completed (or force-flushed) bar."""

    time_start: datetime = Field(description="Timestamp of the first event in the bar")
    time_end: datetime = Field(description="Timestamp of the last event in the bar")
    rule: str = Field(description="Label of the rule that closed the bar, e.g. 'aligned_5m'")
    open: Decimal = Field(description="Price of the first event")
    high: Decimal = Field(description="Highest price in the bar")
    low: Decimal = Field(description="Lowest price in the bar")
    close: Decimal = Field(description="Price of the last event")
    vwap: Decimal = Field(description="Volume-weighted average price")
    volume: Decimal = Field(description="Volume assigned to this bar")
    dollar_volume: Decimal = Field(description="Notional of the assigned volume")
    tick_count: int = Field(description="Number of event contributions in the bar")
    time_span: timedelta = Field(description="Duration from first to last event")
    window_start: datetime | None = Field(
        default=None, description="Start of the time window (time rules only)"
    )
    window_end: datetime | None = Field(
        default=None, description="Exclusive end of the time window (time rules only)"
    )
    complete: bool = Field(
        default=True, description="False for a partial bar emitted by flush()"
    )

    model_config = {"frozen": True}


class Accumulator:
    """Tracks running OHLCV state while building a single bar.

    A split event contributes to two or more bars, so add() takes the
    volume to assign separately from the event.
    """

    __slots__ = (
        "time_start",
        "time_end",
        "_open",
        "_high",
        "_low",
        "_close",
        "_volume",
        "_dollar_volume",
        "tick_count",
    )

    def __init__(self) -> None:
        self.time_start: datetime | None = None
        self.time_end: datetime | None = None
        self._open: Decimal | None = None
        self._high: Decimal | None = None
        self._low: Decimal | None = None
        self._close: Decimal | None = None
        self._volume: Decimal = Decimal("0")
        self._dollar_volume: Decimal = Decimal("0")
        self.tick_count: int = 0

    @property
    def volume(self) -> Decimal:
        return self._volume

    def add(self, event: Event, volume: Decimal) -> None:
        """Incorporate `volume` units of an event into the running bar."""
        if self.tick_count == 0:
            self.time_start = event.timestamp
            self._open = event.price
            self._high = event.price
            self._low = event.price
        else:
            assert self._high is not None and self._low is not None
            self._high = max(self._high, event.price)
            self._low = min(self._low, event.price)

        self.time_end = event.timestamp
        self._close = event.price
        self._volume += volume
        self._dollar_volume += event.price * volume
        self.tick_count += 1

    def to_bar(
        self,
        rule: str,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
        complete: bool = True,
    ) -> Bar:
        """Produce a Bar from the accumulated state."""
        assert self.tick_count > 0, "Cannot create bar from empty accumulator"
        assert self.time_start is not None and self.time_end is not None
        assert self._open is not None and self._close is not None
        assert self._high is not None and self._low is not None

        vwap = self._dollar_volume / self._volume if self._volume > 0 else self._close

        return Bar(
            time_start=self.time_start,
            time_end=self.time_end,
            rule=rule,
            open=self._open,
            high=self._high,
            low=self._low,
            close=self._close,
            vwap=vwap,
            volume=self._volume,
            dollar_volume=self._dollar_volume,
            tick_count=self.tick_count,
            time_span=self.time_end - self.time_start,
            window_start=window_start,
            window_end=window_end,
            complete=complete,
        )


class BarDriver:
    """Feeds events into a rule and materializes the bars it closes.

    The driver is stateful — it accumulates events across
    process_events() calls, so a stream can arrive in batches.

    Args:
        rule: The aggregation rule deciding bar boundaries. The driver
            takes ownership; do not feed the same rule from elsewhere.
        skip_out_of_order: When True, events rejected by a time rule for
            arriving before the open bar's anchor are logged and counted
            in `skipped` instead of raising OrderingViolation.
    """

    def __init__(self, rule: AggregationRule, skip_out_of_order: bool = False) -> None:
        self._rule = rule
        self._skip_out_of_order = skip_out_of_order
        self._acc = Accumulator()
        self.skipped = 0

    @property
    def rule(self) -> AggregationRule:
        return self._rule

    def process_event(self, event: Event) -> list[Bar]:
        """Process one event. Returns the bars it completed (often none)."""
        try:
            decisions = self._rule.evaluate(event)
        except OrderingViolation as exc:
            if not self._skip_out_of_order:
                raise
            self.skipped += 1
            logger.warning("Skipping out-of-order event: %s", exc)
            return []

        bars: list[Bar] = []
        for decision in decisions:
            if decision.includes_event:
                self._acc.add(event, decision.volume)
            if decision.closes:
                bars.append(self._emit(decision))

        last = decisions[-1]
        if last.kind is DecisionKind.CLOSE_AND_CARRY:
            assert last.carry is not None
            self._acc.add(event, last.carry)
        elif last.kind is DecisionKind.CLOSE:
            self._rule.reset()
        return bars

    def process_events(self, events: Iterable[Event]) -> list[Bar]:
        """Process a batch of events, collecting completed bars.

        Time rules require events in ascending timestamp order.
        """
        bars: list[Bar] = []
        for event in events:
            bars.extend(self.process_event(event))
        return bars

    def flush(self) -> Bar | None:
        """Emit the open bar as a partial bar (end of data or shutdown).

        Returns None if nothing has been accumulated. The rule is reset
        either way.
        """
        self._rule.reset()
        if self._acc.tick_count == 0:
            return None
        bar = self._acc.to_bar(self._rule.label, complete=False)
        self._acc = Accumulator()
        return bar

    def _emit(self, decision: Decision) -> Bar:
        """Emit the current bar and start a fresh accumulator."""
        bar = self._acc.to_bar(
            self._rule.label,
            window_start=decision.window_start,
            window_end=decision.window_end,
        )
        self._acc = Accumulator()
        logger.debug(
            "Emitted %s bar %s → %s (volume %s, %d ticks)",
            bar.rule,
            bar.time_start.isoformat(),
            bar.time_end.isoformat(),
            bar.volume,
            bar.tick_count,
        )
        return bar
