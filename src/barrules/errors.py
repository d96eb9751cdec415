"""Exceptions raised by aggregation rules."""


class ConfigurationError(ValueError):
    """Invalid rule parameters. Raised at construction, never while streaming."""


class OrderingViolation(ValueError):
    """A time-based rule received an event earlier than its open bar's anchor."""

    def __init__(self, timestamp, anchor) -> None:
        super().__init__(
            f"Event at {timestamp.isoformat()} is earlier than bar anchor {anchor.isoformat()}"
        )
        self.timestamp = timestamp
        self.anchor = anchor
