"""Aggregation rules — decide where one bar ends and the next begins."""

from barrules.rules.base import AggregationRule, RuleState
from barrules.rules.spec import parse_rule_spec
from barrules.rules.time import EPOCH, AlignedTimeRule, TimeRule, duration_label
from barrules.rules.volume import VolumeRule

__all__ = [
    # Contract
    "AggregationRule",
    "RuleState",
    # Time-based
    "AlignedTimeRule",
    "TimeRule",
    "EPOCH",
    "duration_label",
    # Activity-based
    "VolumeRule",
    # Construction from labels
    "parse_rule_spec",
]
