"""
Business calendar used to compute termination grace periods.

Rules never read the wall clock directly: they ask an injected
:class:`MonkeyCalendar` for ``now()`` and for the date N business days later.
Business-day arithmetic is delegated to numpy's ``busday_offset`` with a
weekend mask and a holiday table.

Usage
-----
    from janitor.business_calendar import BusinessCalendar
    cal = BusinessCalendar(holidays=["2024-12-25"])
    cal.add_business_days(cal.now(), 3)
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timezone, tzinfo
from typing import Callable, Iterable

import numpy as np

from janitor.errors import InvalidArgument, InvalidConfiguration

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


class MonkeyCalendar(ABC):
    """Capability consumed by rules: the current instant plus business-day math."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current instant."""

    @abstractmethod
    def add_business_days(self, when: datetime, days: int) -> datetime:
        """Return the instant *days* business days after *when*."""


class BusinessCalendar(MonkeyCalendar):
    """
    Monday–Friday calendar with an optional holiday table.

    Parameters
    ----------
    holidays : iterable of ``date`` or ISO ``"YYYY-MM-DD"`` strings
        Days that never count as business days.
    clock : callable, optional
        Returns the current instant.  Defaults to the wall clock in *tz*.
    tz : tzinfo
        Timezone of the default clock.
    """

    WEEKMASK = "1111100"

    def __init__(
        self,
        holidays: Iterable[date | str] = (),
        clock: Clock | None = None,
        tz: tzinfo = timezone.utc,
    ) -> None:
        try:
            self._holidays = np.array(sorted({np.datetime64(h, "D") for h in holidays}), dtype="datetime64[D]")
        except ValueError as exc:
            raise InvalidConfiguration(f"Invalid holiday date: {exc}") from exc
        self._tz = tz
        self._clock = clock or (lambda: datetime.now(self._tz))
        logger.debug("Business calendar created with %d holidays", len(self._holidays))

    @property
    def holidays(self) -> list[date]:
        return [d.item() for d in self._holidays]

    def now(self) -> datetime:
        return self._clock()

    def is_business_day(self, when: date | datetime) -> bool:
        day = when.date() if isinstance(when, datetime) else when
        return bool(np.is_busday(np.datetime64(day, "D"), weekmask=self.WEEKMASK, holidays=self._holidays))

    def add_business_days(self, when: datetime, days: int) -> datetime:
        """
        Count *days* business days forward from *when*, keeping its time of day.

        A start on a weekend or holiday first moves forward to the next business
        day, then *days* more are counted: Saturday + 0 is Monday and
        Saturday + 1 is Tuesday.  The result is always a business day.
        """
        if isinstance(days, bool) or not isinstance(days, int):
            raise InvalidArgument(f"Business day count must be an int, got {days!r}")
        if days < 0:
            raise InvalidArgument(f"Business day count must be >= 0, got {days}")
        target = np.busday_offset(
            np.datetime64(when.date(), "D"),
            days,
            roll="forward",
            weekmask=self.WEEKMASK,
            holidays=self._holidays,
        )
        return datetime.combine(target.item(), when.timetz())


class FixedClockCalendar(BusinessCalendar):
    """Business calendar frozen at a given instant; used for deterministic runs."""

    def __init__(self, fixed_now: datetime, holidays: Iterable[date | str] = ()) -> None:
        super().__init__(holidays=holidays, clock=lambda: fixed_now, tz=fixed_now.tzinfo or timezone.utc)
        self.fixed_now = fixed_now
