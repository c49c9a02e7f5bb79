"""Filter criteria: who we measure, how far back, and what gets shown."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from .errors import InvalidFilterInput

_DURATION_PART = re.compile(r"(\d+)\s*([A-Za-z]+)")

_UNITS = {
    "s": timedelta(seconds=1),
    "sec": timedelta(seconds=1),
    "secs": timedelta(seconds=1),
    "second": timedelta(seconds=1),
    "seconds": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "min": timedelta(minutes=1),
    "mins": timedelta(minutes=1),
    "minute": timedelta(minutes=1),
    "minutes": timedelta(minutes=1),
    "h": timedelta(hours=1),
    "hr": timedelta(hours=1),
    "hrs": timedelta(hours=1),
    "hour": timedelta(hours=1),
    "hours": timedelta(hours=1),
    "d": timedelta(days=1),
    "day": timedelta(days=1),
    "days": timedelta(days=1),
    "w": timedelta(weeks=1),
    "week": timedelta(weeks=1),
    "weeks": timedelta(weeks=1),
    "M": timedelta(days=30.44),
    "month": timedelta(days=30.44),
    "months": timedelta(days=30.44),
    "y": timedelta(days=365.25),
    "year": timedelta(days=365.25),
    "years": timedelta(days=365.25),
}


def parse_duration(text: str) -> timedelta:
    """Parse a relative duration like ``3M``, ``2w 3d`` or ``1year``.

    ``m`` is minutes and ``M`` is months; every other unit is
    case-insensitive.
    """
    raw = text.strip()
    if not raw:
        raise InvalidFilterInput("empty duration")

    total = timedelta()
    pos = 0
    for match in _DURATION_PART.finditer(raw):
        if raw[pos:match.start()].strip():
            raise InvalidFilterInput(f"invalid duration: {text!r}")
        pos = match.end()

        amount, unit = int(match.group(1)), match.group(2)
        if unit not in ("m", "M"):
            unit = unit.lower()
        if unit not in _UNITS:
            raise InvalidFilterInput(f"unknown time unit {match.group(2)!r} in {text!r}")
        total += amount * _UNITS[unit]

    if pos == 0 or raw[pos:].strip():
        raise InvalidFilterInput(f"invalid duration: {text!r}")
    return total


def validate_identity(identity: str) -> str:
    if not identity:
        raise InvalidFilterInput("empty author identity")
    if identity != identity.strip():
        raise InvalidFilterInput(f"author identity has surrounding whitespace: {identity!r}")
    if any(c in identity for c in "<>\n\r"):
        raise InvalidFilterInput(f"malformed author identity: {identity!r}")
    return identity


@dataclass(frozen=True)
class FilterCriteria:
    emails: tuple[str, ...] = ()
    max_age: timedelta | None = None
    only_owned: bool = True
    ignored: tuple[str, ...] = ()
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def cutoff(self) -> datetime | None:
        if self.max_age is None:
            return None
        return self.now - self.max_age

    def is_target(self, email: str) -> bool:
        return email in self.emails

    def is_ignored(self, email: str) -> bool:
        return email in self.ignored


def build_criteria(
    emails: list[str] | None = None,
    max_age: str | None = None,
    only_owned: bool = True,
    ignored: list[str] | None = None,
    now: datetime | None = None,
) -> FilterCriteria:
    """Validate raw option values and freeze them. Fails before any blame work."""
    return FilterCriteria(
        emails=tuple(validate_identity(e) for e in emails or []),
        max_age=parse_duration(max_age) if max_age is not None else None,
        only_owned=only_owned,
        ignored=tuple(validate_identity(e) for e in ignored or []),
        now=now or datetime.now(timezone.utc),
    )
