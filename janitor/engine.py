"""
Rule engine for Cloud Janitor.

Applies an ordered set of :class:`~janitor.rules.Rule` objects to each
resource with AND semantics: a resource is flagged when **any** rule rejects
it.  When several rules reject the same resource, the earliest termination
time wins, together with the reason of the rule that produced it.

Exclusion rules run first.  An exclusion rule returning ``False`` takes the
resource out of cleanup entirely, and the main rules are not evaluated.

Usage
-----
    import logging
    from janitor.engine import build_default_engine

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(name)s | %(levelname)s | %(message)s")
    engine = build_default_engine()
    report = engine.evaluate(resources)
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable
from zoneinfo import ZoneInfo

from config.settings import Settings, settings
from janitor.business_calendar import BusinessCalendar, MonkeyCalendar
from janitor.errors import InvalidArgument, InvalidConfiguration
from janitor.rules import NoOwnerInstanceRule, Rule, UntaggedRule
from resources.models import OWNER_TAG, Resource

logger = logging.getLogger(__name__)


@dataclass
class EvaluationReport:
    """Outcome of evaluating a batch of resources."""

    flagged: list[Resource] = field(default_factory=list)
    valid: list[Resource] = field(default_factory=list)
    errors: list[tuple[Any, Exception]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.flagged) + len(self.valid) + len(self.errors)

    def to_dict(self) -> dict[str, Any]:
        return {
            "flagged": [r.to_dict() for r in self.flagged],
            "valid": [r.id for r in self.valid],
            "errors": [{"resource": repr(item), "error": str(exc)} for item, exc in self.errors],
        }


class JanitorRuleEngine:
    """Evaluates resources against exclusion rules and cleanup rules."""

    def __init__(self, rules: Iterable[Rule] = (), exclusion_rules: Iterable[Rule] = ()) -> None:
        self._rules: list[Rule] = []
        self._exclusion_rules: list[Rule] = []
        for rule in rules:
            self.add_rule(rule)
        for rule in exclusion_rules:
            self.add_exclusion_rule(rule)

    @property
    def rules(self) -> list[Rule]:
        return list(self._rules)

    @property
    def exclusion_rules(self) -> list[Rule]:
        return list(self._exclusion_rules)

    def add_rule(self, rule: Rule) -> JanitorRuleEngine:
        if not isinstance(rule, Rule):
            raise InvalidConfiguration(f"Not a rule: {rule!r}")
        self._rules.append(rule)
        return self

    def add_exclusion_rule(self, rule: Rule) -> JanitorRuleEngine:
        if not isinstance(rule, Rule):
            raise InvalidConfiguration(f"Not a rule: {rule!r}")
        self._exclusion_rules.append(rule)
        return self

    def is_valid(self, resource: Resource) -> bool:
        """
        Return ``False`` and schedule termination if any rule rejects *resource*.

        Each rule runs against its own copy of the resource so that one rule's
        side effects never leak into another's input.  Only the winning
        termination time and reason are written back.
        """
        if resource is None:
            raise InvalidArgument("resource must not be None")

        for rule in self._exclusion_rules:
            if not rule.is_valid(copy.deepcopy(resource)):
                logger.info("Resource %s is excluded from cleanup by %r", resource.id, rule)
                return True

        earliest: Resource | None = None
        winner: Rule | None = None
        for rule in self._rules:
            scratch = copy.deepcopy(resource)
            if rule.is_valid(scratch):
                continue
            if not scratch.is_marked:
                raise InvalidConfiguration(
                    f"Rule {rule!r} rejected {resource.id} without setting a termination time and reason"
                )
            logger.debug("Rule %r rejected %s: %s", rule, resource.id, scratch.termination_reason)
            if earliest is None or self._is_earlier(scratch, earliest, rule, winner):
                earliest, winner = scratch, rule

        if earliest is None:
            return True

        when = earliest.expected_termination_time
        resource.schedule_termination(when, earliest.termination_reason, marked_at=earliest.mark_time)
        logger.info("Resource %s flagged by %r, termination at %s", resource.id, winner, when.isoformat())
        return False

    @staticmethod
    def _is_earlier(candidate: Resource, current: Resource, rule: Rule, winner: Rule | None) -> bool:
        # Naive and aware datetimes cannot be ordered.
        try:
            return candidate.expected_termination_time < current.expected_termination_time
        except TypeError as exc:
            raise InvalidConfiguration(
                f"Rule {rule!r} produced a termination time not comparable with {winner!r}: {exc}"
            ) from exc

    def evaluate(self, resources: Iterable[Resource]) -> EvaluationReport:
        """Evaluate resources one at a time and sort them into flagged/valid/errors."""
        report = EvaluationReport()
        for resource in resources:
            try:
                if self.is_valid(resource):
                    report.valid.append(resource)
                else:
                    report.flagged.append(resource)
            except InvalidArgument as exc:
                logger.error("Skipping resource %r: %s", resource, exc)
                report.errors.append((resource, exc))

        logger.info(
            "Evaluation complete: %d resources (%d flagged, %d valid, %d errors)",
            report.total,
            len(report.flagged),
            len(report.valid),
            len(report.errors),
        )
        return report


# ──────────────────────────────────────────────────────────────────────────────
# Wiring from settings
# ──────────────────────────────────────────────────────────────────────────────


def build_default_calendar(config: Settings = settings) -> BusinessCalendar:
    """Return a wall-clock business calendar using the configured holidays and timezone."""
    if config.JANITOR_TIMEZONE.upper() == "UTC":
        return BusinessCalendar(holidays=config.JANITOR_HOLIDAYS)
    try:
        tz = ZoneInfo(config.JANITOR_TIMEZONE)
    except (KeyError, ValueError) as exc:
        raise InvalidConfiguration(f"Unknown timezone {config.JANITOR_TIMEZONE!r}") from exc
    return BusinessCalendar(holidays=config.JANITOR_HOLIDAYS, tz=tz)


def build_default_engine(
    config: Settings = settings,
    calendar: MonkeyCalendar | None = None,
) -> JanitorRuleEngine:
    """Return an engine with the standard rule set configured from *config*."""
    calendar = calendar or build_default_calendar(config)
    engine = JanitorRuleEngine()
    engine.add_rule(NoOwnerInstanceRule(calendar, config.JANITOR_RETENTION_DAYS))

    extra_tags = [t for t in config.JANITOR_REQUIRED_TAGS if t != OWNER_TAG]
    if extra_tags:
        engine.add_rule(UntaggedRule(calendar, extra_tags, config.JANITOR_RETENTION_DAYS))

    logger.info("Rule engine built with rules: %s", engine.rules)
    return engine
