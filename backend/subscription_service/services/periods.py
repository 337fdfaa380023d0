"""Year-month periods: parsing, rendering and month arithmetic.

Periods travel as ``YYYY-MM`` text and are stored as the first day of the
month. Zero-padded ``YYYY-MM`` text sorts in chronological order, so string
and date comparisons agree.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass
from datetime import date

from ..errors import InvalidFormat, InvalidRange

PERIOD_FORMAT_HINT = "Expected YYYY-MM"


def _is_ascii_digits(text: str) -> bool:
    return text.isascii() and text.isdigit()


def parse_period(text: str) -> date:
    """Parse ``YYYY-MM`` into the first day of that month."""
    if not isinstance(text, str) or len(text) != 7 or text[4] != "-":
        raise InvalidFormat(f"{PERIOD_FORMAT_HINT}, got {text!r}")

    year_text, month_text = text[:4], text[5:]
    if not _is_ascii_digits(year_text) or not _is_ascii_digits(month_text):
        raise InvalidFormat(f"{PERIOD_FORMAT_HINT}, got {text!r}")

    year = int(year_text)
    month_number = int(month_text)

    if month_number < 1 or month_number > 12 or year < 1:
        raise InvalidFormat(f"{PERIOD_FORMAT_HINT}, got {text!r}")

    return date(year, month_number, 1)


def period_label(month_start: date) -> str:
    """Render a month start date as YYYY-MM."""
    return f"{month_start.year:04d}-{month_start.month:02d}"


def month_start(value: date) -> date:
    return date(value.year, value.month, 1)


def shift_months(month_start: date, offset: int) -> date:
    # Normalize any input date to month start for stable month arithmetic.
    absolute_index = (month_start.year * 12 + (month_start.month - 1)) + offset
    next_year, month_zero_based = divmod(absolute_index, 12)
    return date(next_year, month_zero_based + 1, 1)


def months_between(start: date, end: date) -> int:
    """Number of months in [start, end] counted inclusively; 0 when end < start."""
    span = (end.year * 12 + end.month) - (start.year * 12 + start.month) + 1
    return max(span, 0)


def validate_period_order(start_text: str, end_text: str) -> None:
    """Raise InvalidRange when the canonical end text sorts before start."""
    if end_text < start_text:
        raise InvalidRange(f"end period {end_text} is before start period {start_text}")


@dataclass(frozen=True)
class PeriodRange:
    """Inclusive range of calendar months.

    Iterating yields month start dates lazily; every ``iter()`` call starts
    over from ``start``.
    """

    start: date
    end: date

    def __post_init__(self) -> None:
        if self.start.day != 1 or self.end.day != 1:
            raise InvalidFormat("PeriodRange bounds must be month starts")
        if self.end < self.start:
            raise InvalidRange(
                f"end period {period_label(self.end)} is before start period {period_label(self.start)}"
            )

    def __iter__(self) -> Iterator[date]:
        current = self.start
        while True:
            yield current
            # Stop before stepping: 9999-12 has no successor month.
            if current >= self.end:
                return
            current = shift_months(current, 1)

    def __len__(self) -> int:
        return months_between(self.start, self.end)

    def __contains__(self, month: object) -> bool:
        return isinstance(month, date) and self.start <= month_start(month) <= self.end

    @property
    def label(self) -> str:
        return f"{period_label(self.start)}..{period_label(self.end)}"


def parse_period_range(start_text: str, end_text: str) -> PeriodRange:
    """Validate both bounds and their order, then build the range."""
    start = parse_period(start_text)
    end = parse_period(end_text)
    validate_period_order(start_text, end_text)
    return PeriodRange(start=start, end=end)
