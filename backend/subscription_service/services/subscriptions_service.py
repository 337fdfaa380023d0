"""Service layer for subscription CRUD and cost aggregation."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING, Any
from uuid import UUID

from ..config import Settings
from ..errors import InvalidFormat, NotFound
from . import subscriptions_repository as repository
from .cost_engine import SubscriptionFilter, calculate_total_cost
from .periods import parse_period, parse_period_range, period_label, validate_period_order

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ("service_name", "price", "start_date", "end_date")
NON_NULLABLE_FIELDS = ("service_name", "price", "start_date")


def _clean_service_name(value: Any) -> str:
    name = str(value or "").strip()
    if not name:
        raise InvalidFormat("service_name is required")
    return name


def _clean_price(value: Any) -> int:
    price = int(value)
    if price <= 0:
        raise InvalidFormat("price must be a positive integer")
    return price


def _parse_optional_period(value: str | None) -> date | None:
    if value is None:
        return None
    return parse_period(value)


def _check_period_order(start_date: date, end_date: date | None) -> None:
    if end_date is not None:
        validate_period_order(period_label(start_date), period_label(end_date))


def apply_patch(current: dict[str, Any], patch: dict[str, Any]) -> dict[str, Any]:
    """
    Merge a field update set over the current row.

    A key present in ``patch`` replaces the stored value (``end_date: None``
    reopens the subscription); a missing key keeps it.
    """
    merged = {field: current[field] for field in UPDATABLE_FIELDS}
    for field in UPDATABLE_FIELDS:
        if field in patch:
            merged[field] = patch[field]
    return merged


def clamp_limit(limit: int, *, default: int, maximum: int) -> int:
    if limit <= 0:
        return default
    return min(limit, maximum)


class SubscriptionService:
    """Validation and orchestration over the subscriptions store."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings

    async def create(self, connection: AsyncConnection, data: dict[str, Any]) -> dict[str, Any]:
        logger.info("creating subscription service_name=%s", data.get("service_name"))

        start_date = parse_period(data["start_date"])
        end_date = _parse_optional_period(data.get("end_date"))
        _check_period_order(start_date, end_date)

        row = await repository.insert_subscription(
            connection,
            {
                "service_name": _clean_service_name(data["service_name"]),
                "price": _clean_price(data["price"]),
                "user_id": data["user_id"],
                "start_date": start_date,
                "end_date": end_date,
            },
        )
        logger.info("subscription created id=%s", row["id"])
        return row

    async def get(self, connection: AsyncConnection, subscription_id: UUID) -> dict[str, Any]:
        logger.info("getting subscription id=%s", subscription_id)

        row = await repository.fetch_subscription(connection, subscription_id)
        if row is None:
            logger.warning("subscription not found id=%s", subscription_id)
            raise NotFound("Subscription not found")
        return row

    async def update(
        self,
        connection: AsyncConnection,
        subscription_id: UUID,
        patch: dict[str, Any],
    ) -> dict[str, Any]:
        logger.info("updating subscription id=%s fields=%s", subscription_id, sorted(patch))

        # Supplied fields are validated before the row is touched.
        parsed: dict[str, Any] = {}
        for field in UPDATABLE_FIELDS:
            if field not in patch:
                continue
            value = patch[field]
            if value is None and field in NON_NULLABLE_FIELDS:
                raise InvalidFormat(f"{field} cannot be null")
            if field == "service_name":
                value = _clean_service_name(value)
            elif field == "price":
                value = _clean_price(value)
            elif field in ("start_date", "end_date"):
                value = _parse_optional_period(value)
            parsed[field] = value

        if "start_date" in parsed and "end_date" in parsed:
            _check_period_order(parsed["start_date"], parsed["end_date"])

        async with connection.transaction():
            current = await repository.fetch_subscription_for_update(connection, subscription_id)
            if current is None:
                logger.warning("subscription not found for update id=%s", subscription_id)
                raise NotFound("Subscription not found")

            merged = apply_patch(current, parsed)
            _check_period_order(merged["start_date"], merged["end_date"])

            row = await repository.update_subscription(connection, subscription_id, merged)

        if row is None:
            raise NotFound("Subscription not found")

        logger.info("subscription updated id=%s", subscription_id)
        return row

    async def delete(self, connection: AsyncConnection, subscription_id: UUID) -> None:
        logger.info("deleting subscription id=%s", subscription_id)

        removed = await repository.delete_subscription(connection, subscription_id)
        if not removed:
            logger.warning("subscription not found for deletion id=%s", subscription_id)

    async def list_subscriptions(
        self,
        connection: AsyncConnection,
        *,
        user_id: str | None = None,
        service_name: str | None = None,
        limit: int = 0,
        offset: int = 0,
    ) -> dict[str, Any]:
        subscription_filter = SubscriptionFilter.from_query(user_id, service_name)
        limit = clamp_limit(
            limit,
            default=self.settings.default_list_limit,
            maximum=self.settings.max_list_limit,
        )
        offset = max(offset, 0)
        logger.info("listing subscriptions limit=%s offset=%s", limit, offset)

        rows, total = await repository.list_subscriptions(connection, subscription_filter, limit, offset)

        logger.info("subscriptions listed count=%s total=%s", len(rows), total)
        return {"items": rows, "total": total, "limit": limit, "offset": offset}

    async def total_cost(
        self,
        connection: AsyncConnection,
        *,
        start_date: str,
        end_date: str,
        user_id: str | None = None,
        service_name: str | None = None,
    ) -> int:
        period = parse_period_range(start_date, end_date)
        subscription_filter = SubscriptionFilter.from_query(user_id, service_name)
        logger.info(
            "calculating total cost period=%s strategy=%s",
            period.label,
            self.settings.cost_strategy,
        )

        if self.settings.cost_strategy == "in_process":
            rows = await repository.fetch_cost_candidates(connection, subscription_filter, period)
            total = calculate_total_cost(rows, period, subscription_filter)
        else:
            total = await repository.sum_cost_over_range(connection, subscription_filter, period)

        logger.info("total cost calculated total_cost=%s", total)
        return total
