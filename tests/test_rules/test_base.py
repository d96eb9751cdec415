"""Tests for the AggregationRule contract shared by all rules."""

from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from barrules.models import DecisionKind, Event
from barrules.rules import AggregationRule, AlignedTimeRule, RuleState, TimeRule, VolumeRule
from barrules.rules.time import EPOCH

RULE_FACTORIES = {
    "time": lambda: TimeRule(timedelta(seconds=60)),
    "aligned": lambda: AlignedTimeRule(timedelta(seconds=60)),
    "volume": lambda: VolumeRule(100),
}


def _event(offset_sec: int, volume: str = "10") -> Event:
    return Event(
        timestamp=EPOCH + timedelta(seconds=offset_sec),
        price=Decimal("100"),
        volume=Decimal(volume),
    )


@pytest.fixture(params=sorted(RULE_FACTORIES))
def make_rule(request):
    return RULE_FACTORIES[request.param]


class TestAggregationRuleContract:
    def test_cannot_instantiate_abstract_base(self):
        with pytest.raises(TypeError):
            AggregationRule()  # type: ignore[abstract]

    def test_fresh_state_is_empty(self, make_rule):
        assert make_rule().current_state() == RuleState()

    def test_reset_right_after_construction(self, make_rule):
        rule = make_rule()
        rule.reset()
        assert rule.current_state() == make_rule().current_state()

    def test_reset_is_idempotent(self, make_rule):
        rule = make_rule()
        rule.evaluate(_event(0))
        rule.evaluate(_event(5))
        rule.reset()
        rule.reset()
        assert rule.current_state() == make_rule().current_state()

    def test_current_state_does_not_mutate(self, make_rule):
        rule = make_rule()
        rule.evaluate(_event(0))
        first = rule.current_state()
        second = rule.current_state()
        assert first == second
        assert first.event_count == 1

    def test_state_snapshot_is_frozen(self, make_rule):
        rule = make_rule()
        rule.evaluate(_event(0))
        state = rule.current_state()
        with pytest.raises(ValidationError):
            state.accumulated = Decimal("999")  # type: ignore[misc]

    def test_snapshot_detached_from_later_events(self, make_rule):
        rule = make_rule()
        rule.evaluate(_event(0))
        before = rule.current_state()
        rule.evaluate(_event(5))
        assert before.event_count == 1

    def test_last_timestamp_follows_events(self, make_rule):
        rule = make_rule()
        rule.evaluate(_event(0, volume="1"))
        assert rule.current_state().last_timestamp == EPOCH

        rule.evaluate(_event(5, volume="1"))
        state = rule.current_state()
        assert state.anchor == EPOCH
        assert state.last_timestamp == EPOCH + timedelta(seconds=5)

        rule.reset()
        assert rule.current_state().last_timestamp is None

    def test_first_event_always_continues(self, make_rule):
        decisions = make_rule().evaluate(_event(0, volume="1"))
        assert [d.kind for d in decisions] == [DecisionKind.CONTINUE]

    def test_repr_shows_label(self, make_rule):
        rule = make_rule()
        assert rule.label in repr(rule)


class TestResetDiscardsState:
    def test_volume_not_carried_across_reset(self):
        rule = VolumeRule(100)
        rule.evaluate(_event(0, volume="80"))
        rule.reset()

        # Without the reset, 50 more would split the bar.
        decisions = rule.evaluate(_event(1, volume="50"))
        assert [d.kind for d in decisions] == [DecisionKind.CONTINUE]
        assert rule.current_state().accumulated == Decimal("50")

    def test_anchor_not_carried_across_reset(self):
        rule = TimeRule(timedelta(seconds=60))
        rule.evaluate(_event(0))
        rule.reset()

        # 70s after the old anchor, but the bar now starts here.
        decisions = rule.evaluate(_event(70))
        assert decisions[0].kind is DecisionKind.CONTINUE
        assert rule.current_state().anchor == EPOCH + timedelta(seconds=70)
