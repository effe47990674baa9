"""
Resource data models for Cloud Janitor.

Defines the generic cloud resource that crawlers produce and janitor rules
inspect.  A rule that rejects a resource records *when* it should be
terminated and *why* directly on the resource object.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

OWNER_TAG = "owner"
"""Tag key holding the owner's email address."""


class ResourceType(str, Enum):
    """Kinds of cloud resources the janitor knows about."""

    INSTANCE = "INSTANCE"
    VOLUME = "VOLUME"
    SNAPSHOT = "SNAPSHOT"
    IMAGE = "IMAGE"
    ASG = "ASG"
    LAUNCH_CONFIG = "LAUNCH_CONFIG"


@dataclass
class Resource:
    """
    A cloud-managed entity (instance, volume, ...) as seen by the janitor.

    Created by an external crawler from live provider data.  Rules receive it
    by reference and may schedule it for termination.  A resource must only be
    mutated by one rule evaluation at a time.
    """

    id: str
    """Provider identifier, e.g. ``"i-0abc123"``."""

    resource_type: ResourceType
    """Discriminator rules use to skip resources outside their jurisdiction."""

    state: str = ""
    """Provider-reported lifecycle state (``"running"``, ``"pending"``, ...)."""

    tags: dict[str, str] = field(default_factory=dict)

    region: str = ""
    description: str = ""
    launch_time: datetime | None = None

    expected_termination_time: datetime | None = None
    """When the resource is due for cleanup; set only by a rejecting rule."""

    termination_reason: str | None = None
    """Human-readable reason; set together with ``expected_termination_time``."""

    mark_time: datetime | None = None
    """When the resource was last flagged."""

    def __setattr__(self, name: str, value: Any) -> None:
        if name == "id" and "id" in self.__dict__:
            raise AttributeError("Resource id is immutable")
        super().__setattr__(name, value)

    # ── Tags ──────────────────────────────────────────────────────────────

    def get_tag(self, key: str) -> str | None:
        return self.tags.get(key)

    def has_tag(self, key: str) -> bool:
        """True when the tag is present with a non-empty value."""
        return bool(self.tags.get(key))

    def set_tag(self, key: str, value: str) -> None:
        self.tags[key] = value

    # ── Termination scheduling ────────────────────────────────────────────

    def set_expected_termination_time(self, when: datetime) -> None:
        self.expected_termination_time = when

    def set_termination_reason(self, reason: str) -> None:
        self.termination_reason = reason

    def schedule_termination(self, when: datetime, reason: str, marked_at: datetime) -> None:
        """Flag the resource: set termination time and reason together, marked at *marked_at*."""
        self.set_expected_termination_time(when)
        self.set_termination_reason(reason)
        self.mark_time = marked_at

    def clear_termination(self) -> None:
        self.expected_termination_time = None
        self.termination_reason = None
        self.mark_time = None

    @property
    def is_marked(self) -> bool:
        return self.expected_termination_time is not None and self.termination_reason is not None

    # ── Serialization ─────────────────────────────────────────────────────

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict for JSON/logging."""

        def _iso(value: datetime | None) -> str | None:
            return value.isoformat() if value else None

        return {
            "id": self.id,
            "resource_type": self.resource_type.value,
            "state": self.state,
            "tags": dict(self.tags),
            "region": self.region,
            "description": self.description,
            "launch_time": _iso(self.launch_time),
            "expected_termination_time": _iso(self.expected_termination_time),
            "termination_reason": self.termination_reason,
            "mark_time": _iso(self.mark_time),
        }

    def __str__(self) -> str:
        parts = [f"[{self.resource_type.value}]", self.id]
        if self.state:
            parts.append(f"({self.state})")
        if self.is_marked:
            parts.append(f"terminate@{self.expected_termination_time.isoformat()}")
        return " ".join(parts)
