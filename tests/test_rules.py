"""
Tests for the janitor rules.

Uses a calendar frozen on Monday 2024-01-01 and verifies:
- Type and state selectivity (non-instances and non-running instances are valid)
- Termination scheduling for instances without an owner tag
- Constructor validation
- The untagged-resource rule
"""

from __future__ import annotations

import pytest
from unittest.mock import MagicMock
from datetime import datetime, timezone

from janitor.business_calendar import FixedClockCalendar
from janitor.errors import InvalidArgument, InvalidConfiguration
from janitor.rules import NoOwnerInstanceRule, UntaggedRule
from resources.models import OWNER_TAG, Resource, ResourceType

MONDAY = datetime(2024, 1, 1, 9, 30, tzinfo=timezone.utc)
REASON = "No ownerEmail tag associated with this instance"


@pytest.fixture
def calendar():
    return FixedClockCalendar(MONDAY)


@pytest.fixture
def rule(calendar):
    return NoOwnerInstanceRule(calendar, retention_days=7)


def _instance(state="running", tags=None, resource_type=ResourceType.INSTANCE):
    return Resource(id="i-abc123", resource_type=resource_type, state=state, tags=tags or {})


# ──────────────────────────────────────────────────────────────────────────────
# NoOwnerInstanceRule
# ──────────────────────────────────────────────────────────────────────────────


class TestNoOwnerInstanceRule:
    """Tests for the no-owner instance rule."""

    def test_flags_running_instance_without_owner(self, rule):
        """A running instance with no owner tag is scheduled 7 business days out."""
        resource = _instance()

        assert rule.is_valid(resource) is False
        assert resource.expected_termination_time == datetime(2024, 1, 10, 9, 30, tzinfo=timezone.utc)
        assert resource.termination_reason == REASON
        assert resource.mark_time == MONDAY

    def test_empty_owner_tag_counts_as_missing(self, rule):
        resource = _instance(tags={OWNER_TAG: ""})

        assert rule.is_valid(resource) is False
        assert resource.termination_reason == REASON

    def test_owner_tag_present_is_valid(self, rule):
        """An owned instance is valid and left untouched."""
        resource = _instance(tags={OWNER_TAG: "alice@example.com"})
        before = resource.to_dict()

        assert rule.is_valid(resource) is True
        assert resource.to_dict() == before
        assert resource.expected_termination_time is None
        assert resource.termination_reason is None

    @pytest.mark.parametrize(
        "resource_type",
        [t for t in ResourceType if t != ResourceType.INSTANCE],
    )
    def test_non_instance_types_are_ignored(self, rule, resource_type):
        """Resources outside the rule's jurisdiction are valid and never mutated."""
        resource = _instance(resource_type=resource_type)
        before = resource.to_dict()

        assert rule.is_valid(resource) is True
        assert resource.to_dict() == before

    @pytest.mark.parametrize("state", ["pending", "stopped", "terminated", "Running", ""])
    def test_non_running_states_are_valid(self, rule, state):
        """Only instances in exactly the 'running' state are evaluated."""
        resource = _instance(state=state)

        assert rule.is_valid(resource) is True
        assert resource.expected_termination_time is None

    def test_pending_instance_is_valid_even_with_owner(self, rule):
        resource = _instance(state="pending", tags={OWNER_TAG: "bob@example.com"})
        assert rule.is_valid(resource) is True

    def test_repeated_evaluation_is_idempotent(self, rule):
        """Evaluating an already-flagged resource yields the same schedule."""
        resource = _instance()

        assert rule.is_valid(resource) is False
        first = (resource.expected_termination_time, resource.termination_reason)
        assert rule.is_valid(resource) is False
        assert (resource.expected_termination_time, resource.termination_reason) == first

    def test_zero_retention_terminates_now(self, calendar):
        rule = NoOwnerInstanceRule(calendar, retention_days=0)
        resource = _instance()

        assert rule.is_valid(resource) is False
        assert resource.expected_termination_time == MONDAY

    def test_zero_retention_on_weekend_lands_on_next_business_day(self):
        """A Saturday flag with no retention still terminates on a business day."""
        rule = NoOwnerInstanceRule(FixedClockCalendar(datetime(2024, 1, 6, 8, 0, tzinfo=timezone.utc)), retention_days=0)
        resource = _instance()

        assert rule.is_valid(resource) is False
        assert resource.expected_termination_time == datetime(2024, 1, 8, 8, 0, tzinfo=timezone.utc)

    def test_logs_resource_id(self, calendar):
        """The injected logger receives an info entry keyed by resource id."""
        log = MagicMock()
        rule = NoOwnerInstanceRule(calendar, retention_days=1, log=log)

        rule.is_valid(_instance())

        log.info.assert_called_once_with("The instance %s has no ownerEmail tag", "i-abc123")

    def test_uses_calendar(self):
        """Termination time comes from the injected calendar."""
        cal = MagicMock()
        cal.now.return_value = MONDAY
        cal.add_business_days.return_value = datetime(2030, 1, 1, tzinfo=timezone.utc)
        rule = NoOwnerInstanceRule(cal, retention_days=4)
        resource = _instance()

        rule.is_valid(resource)

        cal.add_business_days.assert_called_once_with(MONDAY, 4)
        assert resource.expected_termination_time == datetime(2030, 1, 1, tzinfo=timezone.utc)

    def test_none_resource_raises(self, rule):
        with pytest.raises(InvalidArgument):
            rule.is_valid(None)

    def test_none_calendar_rejected(self):
        with pytest.raises(InvalidConfiguration):
            NoOwnerInstanceRule(None, retention_days=3)

    @pytest.mark.parametrize("days", [-1, 1.5, "3", True])
    def test_bad_retention_rejected(self, calendar, days):
        with pytest.raises(InvalidConfiguration):
            NoOwnerInstanceRule(calendar, retention_days=days)

    def test_configuration_is_read_only(self, rule):
        with pytest.raises(AttributeError):
            rule.retention_days = 1


# ──────────────────────────────────────────────────────────────────────────────
# UntaggedRule
# ──────────────────────────────────────────────────────────────────────────────


class TestUntaggedRule:
    """Tests for the required-tags rule."""

    def test_flags_missing_tags_sorted(self, calendar):
        rule = UntaggedRule(calendar, ["team", "cost-center"], retention_days=2)
        resource = _instance(tags={OWNER_TAG: "alice@example.com"})

        assert rule.is_valid(resource) is False
        assert resource.termination_reason == "Missing required tags: cost-center, team"
        assert resource.mark_time == MONDAY
        assert resource.expected_termination_time == datetime(2024, 1, 3, 9, 30, tzinfo=timezone.utc)

    def test_all_tags_present_is_valid(self, calendar):
        rule = UntaggedRule(calendar, ["team"], retention_days=2)
        resource = _instance(tags={"team": "platform"})

        assert rule.is_valid(resource) is True
        assert not resource.is_marked

    def test_respects_resource_types(self, calendar):
        rule = UntaggedRule(calendar, ["team"], retention_days=2, resource_types=[ResourceType.VOLUME])

        assert rule.is_valid(_instance()) is True
        assert rule.is_valid(_instance(resource_type=ResourceType.VOLUME)) is False

    def test_non_running_is_valid(self, calendar):
        rule = UntaggedRule(calendar, ["team"], retention_days=2)
        assert rule.is_valid(_instance(state="stopped")) is True

    def test_empty_required_tags_rejected(self, calendar):
        with pytest.raises(InvalidConfiguration):
            UntaggedRule(calendar, ["", ""], retention_days=2)

    def test_negative_retention_rejected(self, calendar):
        with pytest.raises(InvalidConfiguration):
            UntaggedRule(calendar, ["team"], retention_days=-1)

    def test_none_resource_raises(self, calendar):
        rule = UntaggedRule(calendar, ["team"], retention_days=2)
        with pytest.raises(InvalidArgument):
            rule.is_valid(None)
