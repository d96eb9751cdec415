"""barrules — pluggable bar-boundary rules for trade streams."""

from barrules.bars import Accumulator, Bar, BarDriver
from barrules.errors import ConfigurationError, OrderingViolation
from barrules.models import Decision, DecisionKind, Event
from barrules.rules import (
    AggregationRule,
    AlignedTimeRule,
    RuleState,
    TimeRule,
    VolumeRule,
    parse_rule_spec,
)

__all__ = [
    "Accumulator",
    "AggregationRule",
    "AlignedTimeRule",
    "Bar",
    "BarDriver",
    "ConfigurationError",
    "Decision",
    "DecisionKind",
    "Event",
    "OrderingViolation",
    "RuleState",
    "TimeRule",
    "VolumeRule",
    "parse_rule_spec",
]
