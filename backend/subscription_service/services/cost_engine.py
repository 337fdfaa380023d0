"""Month-overlap cost aggregation.

Subscriptions are billed per calendar month: a subscription costs its
monthly price for every month of the requested range in which it is active,
whatever day of the month it started or ended on.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from typing import Any
from uuid import UUID

from ..errors import InvalidIdentifier
from .periods import PeriodRange


@dataclass(frozen=True)
class SubscriptionFilter:
    """Optional owner and service-name substring predicate."""

    user_id: UUID | None = None
    service_name: str | None = None

    @classmethod
    def from_query(cls, user_id: str | None, service_name: str | None) -> "SubscriptionFilter":
        """Build a filter from raw query text; blank values mean "no filter"."""
        parsed_user_id: UUID | None = None
        if user_id is not None and user_id.strip():
            parsed_user_id = parse_identifier(user_id, field="user_id")

        needle = service_name.strip() if service_name else ""
        return cls(user_id=parsed_user_id, service_name=needle or None)

    def matches(self, row: Mapping[str, Any]) -> bool:
        if self.user_id is not None and row["user_id"] != self.user_id:
            return False

        if self.service_name is not None:
            return self.service_name.lower() in str(row["service_name"]).lower()

        return True


def parse_identifier(value: str | UUID, *, field: str = "id") -> UUID:
    if isinstance(value, UUID):
        return value

    try:
        return UUID(str(value).strip())
    except ValueError as exc:
        raise InvalidIdentifier(f"invalid {field} format") from exc


def is_active_in(row: Mapping[str, Any], month: date) -> bool:
    """Active when start <= month and the subscription has not ended before it."""
    end_date = row["end_date"]
    return row["start_date"] <= month and (end_date is None or end_date >= month)


def count_active_months(row: Mapping[str, Any], period: PeriodRange) -> int:
    return sum(1 for month in period if is_active_in(row, month))


def calculate_total_cost(
    rows: Iterable[Mapping[str, Any]],
    period: PeriodRange,
    subscription_filter: SubscriptionFilter | None = None,
) -> int:
    """
    Sum price x active months over rows that pass the filter.

    Mirrors the SQL join of generated months against subscriptions, so both
    strategies return the same total for the same rows.
    """
    total = 0
    for row in rows:
        if subscription_filter is not None and not subscription_filter.matches(row):
            continue

        active_months = count_active_months(row, period)
        if active_months:
            total += int(row["price"]) * active_months

    return total
