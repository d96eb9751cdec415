"""Event and decision models."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import AwareDatetime, BaseModel, Field


class Event(BaseModel):
    """A single market observation (trade/tick).

    Prices and volumes are stored as Decimal so that volume splits are
    exact — a bar closed by volume must hold exactly its threshold.
    """

    timestamp: AwareDatetime = Field(description="Execution time, timezone-aware")
    price: Decimal = Field(description="Execution price, opaque to the rules")
    volume: Decimal = Field(ge=0, description="Traded quantity, never negative")
    trade_id: str | None = Field(default=None, description="Upstream trade identifier")

    @property
    def dollar_volume(self) -> Decimal:
        """Price * volume — the notional value of this event."""
        return self.price * self.volume

    model_config = {"frozen": True}


class DecisionKind(str, Enum):
    CONTINUE = "continue"
    CLOSE = "close"
    CLOSE_AND_CARRY = "close_and_carry"


class Decision(BaseModel):
    """Result of evaluating one event against a rule's open bar.

    ``volume`` is the portion of the event's volume that belongs to the bar
    this decision is about.  When ``includes_event`` is False the bar was
    closed ahead of the event (a time window ended) and the event is not
    part of it at all.  ``carry`` is the remainder that opens the next bar
    after a split.
    """

    kind: DecisionKind
    volume: Decimal = Decimal("0")
    includes_event: bool = True
    carry: Decimal | None = None
    window_start: datetime | None = None
    window_end: datetime | None = None

    model_config = {"frozen": True}

    @property
    def closes(self) -> bool:
        return self.kind is not DecisionKind.CONTINUE

    @classmethod
    def keep_open(cls, volume: Decimal) -> "Decision":
        return cls(kind=DecisionKind.CONTINUE, volume=volume)

    @classmethod
    def close(
        cls,
        volume: Decimal,
        *,
        includes_event: bool = True,
        window_start: datetime | None = None,
        window_end: datetime | None = None,
    ) -> "Decision":
        return cls(
            kind=DecisionKind.CLOSE,
            volume=volume,
            includes_event=includes_event,
            window_start=window_start,
            window_end=window_end,
        )

    @classmethod
    def close_and_carry(cls, volume: Decimal, carry: Decimal) -> "Decision":
        return cls(kind=DecisionKind.CLOSE_AND_CARRY, volume=volume, carry=carry)
