"""Volume rule: close a bar every V units of traded volume.

Unlike a plain "emit when cumulative volume >= V" builder, the rule splits
the event that crosses the threshold so that every closed bar holds exactly
V.  The part of the event beyond the threshold is carried into the next bar,
and an event larger than V spans as many full bars as it fills.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation

from barrules.errors import ConfigurationError
from barrules.models import Decision, Event
from barrules.rules.base import ZERO, AggregationRule

logger = logging.getLogger(__name__)


class VolumeRule(AggregationRule):
    """Close a bar once its accumulated volume reaches `threshold` exactly.

    Order-agnostic with respect to timestamps: events are accumulated in
    arrival order and never rejected.
    """

    def __init__(self, threshold: Decimal | int | str) -> None:
        super().__init__()
        try:
            self._threshold = Decimal(str(threshold))
        except InvalidOperation:
            raise ConfigurationError(
                f"Volume threshold must be numeric, got {threshold!r}"
            ) from None
        if not self._threshold.is_finite() or self._threshold <= 0:
            raise ConfigurationError(f"Volume threshold must be positive, got {threshold}")

    @property
    def threshold(self) -> Decimal:
        return self._threshold

    @property
    def label(self) -> str:
        return f"volume_{self._threshold:f}"

    def evaluate(self, event: Event) -> list[Decision]:
        volume = event.volume
        remaining = self._threshold - self._accumulated

        if volume < remaining:
            if self._event_count == 0:
                self._open(event, volume)
            else:
                self._add(event, volume)
            return [Decision.keep_open(volume)]

        if volume == remaining:
            self._clear()
            return [Decision.close(volume)]

        # Split: `remaining` fills the open bar, the rest carries forward.
        leftover = volume - remaining
        decisions = [Decision.close_and_carry(remaining, leftover)]
        while leftover > self._threshold:
            leftover -= self._threshold
            decisions.append(Decision.close_and_carry(self._threshold, leftover))

        if leftover == self._threshold:
            decisions.append(Decision.close(leftover))
            self._clear()
        else:
            self._open(event, leftover)

        logger.debug(
            "%s split event of volume %s across %d closed bars",
            self.label,
            volume,
            len(decisions),
        )
        return decisions
