"""
Janitor rules: policies deciding whether a resource is eligible for cleanup.

Every rule implements :meth:`Rule.is_valid`.  Returning ``True`` means "no
action".  Returning ``False`` means the rule flags the resource, and by then it
has already set the expected termination time and reason on the resource.

Rules hold only their configuration and never change it while evaluating, so
one instance can be shared across threads.  They ignore resource types outside
their jurisdiction and report those resources as valid.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable

from janitor.business_calendar import MonkeyCalendar
from janitor.errors import InvalidArgument, InvalidConfiguration
from resources.models import OWNER_TAG, Resource, ResourceType

logger = logging.getLogger(__name__)

RUNNING = "running"


class Rule(ABC):
    """A single cleanup policy applied to one resource at a time."""

    @abstractmethod
    def is_valid(self, resource: Resource) -> bool:
        """Return ``False`` (after scheduling termination) when the resource should be cleaned up."""

    @staticmethod
    def _require_resource(resource: Resource | None) -> Resource:
        if resource is None:
            raise InvalidArgument("resource must not be None")
        return resource

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _validate_schedule(calendar: MonkeyCalendar | None, retention_days: int) -> None:
    """Shared constructor checks for rules that schedule terminations."""
    if calendar is None:
        raise InvalidConfiguration("calendar must not be None")
    if isinstance(retention_days, bool) or not isinstance(retention_days, int):
        raise InvalidConfiguration(f"retention_days must be an int, got {retention_days!r}")
    if retention_days < 0:
        raise InvalidConfiguration(f"retention_days must be >= 0, got {retention_days}")


class NoOwnerInstanceRule(Rule):
    """
    Flags running instances that have no owner tag.

    A running instance whose ``owner`` tag is missing or empty is scheduled
    for termination ``retention_days`` business days from now.  Instances in
    any other state (including ``"pending"``) are left alone.
    """

    TERMINATION_REASON = "No ownerEmail tag associated with this instance"

    def __init__(
        self,
        calendar: MonkeyCalendar,
        retention_days: int,
        log: logging.Logger | None = None,
    ) -> None:
        _validate_schedule(calendar, retention_days)
        self._calendar = calendar
        self._retention_days = retention_days
        self._log = log or logger

    @property
    def calendar(self) -> MonkeyCalendar:
        return self._calendar

    @property
    def retention_days(self) -> int:
        return self._retention_days

    def is_valid(self, resource: Resource) -> bool:
        self._require_resource(resource)
        if resource.resource_type != ResourceType.INSTANCE:
            return True
        if resource.state != RUNNING:
            return True

        if resource.has_tag(OWNER_TAG):
            return True

        now = self._calendar.now()
        termination_time = self._calendar.add_business_days(now, self._retention_days)
        resource.schedule_termination(termination_time, self.TERMINATION_REASON, marked_at=now)
        self._log.info("The instance %s has no ownerEmail tag", resource.id)
        return False

    def __repr__(self) -> str:
        return f"NoOwnerInstanceRule(retention_days={self._retention_days})"


class UntaggedRule(Rule):
    """
    Flags running resources missing any of a set of required tags.

    Only resources whose type is in ``resource_types`` are considered.  The
    termination reason lists the missing tag keys in sorted order.
    """

    REASON_PREFIX = "Missing required tags: "

    def __init__(
        self,
        calendar: MonkeyCalendar,
        required_tags: Iterable[str],
        retention_days: int,
        resource_types: Iterable[ResourceType] = (ResourceType.INSTANCE,),
        log: logging.Logger | None = None,
    ) -> None:
        _validate_schedule(calendar, retention_days)
        tags = frozenset(t for t in required_tags if t)
        if not tags:
            raise InvalidConfiguration("required_tags must name at least one tag")
        self._calendar = calendar
        self._required_tags = tags
        self._retention_days = retention_days
        self._resource_types = frozenset(resource_types)
        self._log = log or logger

    @property
    def required_tags(self) -> frozenset[str]:
        return self._required_tags

    @property
    def retention_days(self) -> int:
        return self._retention_days

    @property
    def resource_types(self) -> frozenset[ResourceType]:
        return self._resource_types

    def is_valid(self, resource: Resource) -> bool:
        self._require_resource(resource)
        if resource.resource_type not in self._resource_types:
            return True
        if resource.state != RUNNING:
            return True

        missing = sorted(t for t in self._required_tags if not resource.has_tag(t))
        if not missing:
            return True

        now = self._calendar.now()
        termination_time = self._calendar.add_business_days(now, self._retention_days)
        resource.schedule_termination(termination_time, self.REASON_PREFIX + ", ".join(missing), marked_at=now)
        self._log.info("The resource %s is missing tags %s", resource.id, missing)
        return False

    def __repr__(self) -> str:
        return (
            f"UntaggedRule(required_tags={sorted(self._required_tags)}, "
            f"retention_days={self._retention_days})"
        )
