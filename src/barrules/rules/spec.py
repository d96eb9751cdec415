"""Parse rule spec strings like 'time_5m', 'aligned_1h' or 'volume_100'."""

from __future__ import annotations

import re
from datetime import datetime, timedelta
from decimal import Decimal

from barrules.errors import ConfigurationError
from barrules.rules.base import AggregationRule
from barrules.rules.time import EPOCH, AlignedTimeRule, TimeRule
from barrules.rules.volume import VolumeRule

_TIME_UNITS = {
    "us": "microseconds",
    "ms": "milliseconds",
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}
RULE_SPEC_PATTERN = re.compile(
    r"^(time|aligned)_(\d+)(us|ms|s|m|h|d)$"
    r"|^volume_(\d+(?:\.\d+)?)$"
)


def parse_rule_spec(spec: str, origin: datetime | None = None) -> AggregationRule:
    """Build the rule a spec string describes.

    Args:
        spec: 'time_Nu', 'aligned_Nu' (u in us/ms/s/m/h/d) or 'volume_N'.
        origin: Alignment origin for aligned rules. Defaults to the Unix
            epoch (UTC). Ignored by other rules.

    Raises:
        ConfigurationError: malformed spec or non-positive parameter.
    """
    m = RULE_SPEC_PATTERN.match(spec)
    if not m:
        raise ConfigurationError(
            f"Invalid rule spec '{spec}'. Expected time_Nu, aligned_Nu or volume_N "
            "(u in us/ms/s/m/h/d). Examples: time_1m, aligned_5m, volume_100"
        )

    if m.group(4) is not None:
        return VolumeRule(Decimal(m.group(4)))

    duration = timedelta(**{_TIME_UNITS[m.group(3)]: int(m.group(2))})
    if m.group(1) == "time":
        return TimeRule(duration)
    return AlignedTimeRule(duration, origin=origin if origin is not None else EPOCH)
