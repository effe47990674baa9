"""Exception types raised by janitor rules and the rule engine."""

from __future__ import annotations


class JanitorError(Exception):
    """Base class for janitor errors."""


class InvalidConfiguration(JanitorError, ValueError):
    """A rule or calendar was constructed with malformed dependencies or parameters."""


class InvalidArgument(JanitorError, ValueError):
    """An evaluation was given an argument it cannot work with (e.g. no resource)."""
