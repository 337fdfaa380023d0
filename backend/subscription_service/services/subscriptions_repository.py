"""SQL access for the subscriptions table."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any
from uuid import UUID

import psycopg

from ..errors import StorageFailure
from .cost_engine import SubscriptionFilter
from .periods import PeriodRange

if TYPE_CHECKING:
    from psycopg import AsyncConnection
else:
    AsyncConnection = Any

logger = logging.getLogger(__name__)

SUBSCRIPTION_COLUMNS = "id, service_name, price, user_id, start_date, end_date, created_at, updated_at"


@contextmanager
def _storage_guard(operation: str) -> Iterator[None]:
    try:
        yield
    except psycopg.Error as exc:
        logger.error("storage failure during %s: %s", operation, exc)
        raise StorageFailure(f"storage failure during {operation}") from exc


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_filter_clause(subscription_filter: SubscriptionFilter, *, alias: str = "") -> tuple[str, list[object]]:
    prefix = f"{alias}." if alias else ""
    filters = ["TRUE"]
    params: list[object] = []

    if subscription_filter.user_id is not None:
        filters.append(f"{prefix}user_id = %s")
        params.append(subscription_filter.user_id)

    if subscription_filter.service_name:
        filters.append(f"{prefix}service_name ILIKE %s")
        params.append(f"%{_escape_like(subscription_filter.service_name)}%")

    return " AND ".join(filters), params


async def insert_subscription(connection: AsyncConnection, data: dict[str, Any]) -> dict[str, Any]:
    with _storage_guard("insert"):
        async with connection.cursor() as cursor:
            await cursor.execute(
                f"""
                INSERT INTO subscriptions (service_name, price, user_id, start_date, end_date)
                VALUES (%s, %s, %s, %s, %s)
                RETURNING {SUBSCRIPTION_COLUMNS}
                """,
                (
                    data["service_name"],
                    data["price"],
                    data["user_id"],
                    data["start_date"],
                    data["end_date"],
                ),
            )
            return await cursor.fetchone()


async def fetch_subscription(connection: AsyncConnection, subscription_id: UUID) -> dict[str, Any] | None:
    with _storage_guard("fetch"):
        async with connection.cursor() as cursor:
            await cursor.execute(
                f"""
                SELECT {SUBSCRIPTION_COLUMNS}
                FROM subscriptions
                WHERE id = %s
                """,
                (subscription_id,),
            )
            return await cursor.fetchone()


async def fetch_subscription_for_update(
    connection: AsyncConnection,
    subscription_id: UUID,
) -> dict[str, Any] | None:
    """Lock the row for the rest of the surrounding transaction."""
    with _storage_guard("fetch for update"):
        async with connection.cursor() as cursor:
            await cursor.execute(
                f"""
                SELECT {SUBSCRIPTION_COLUMNS}
                FROM subscriptions
                WHERE id = %s
                FOR UPDATE
                """,
                (subscription_id,),
            )
            return await cursor.fetchone()


async def update_subscription(
    connection: AsyncConnection,
    subscription_id: UUID,
    fields: dict[str, Any],
) -> dict[str, Any] | None:
    with _storage_guard("update"):
        async with connection.cursor() as cursor:
            await cursor.execute(
                f"""
                UPDATE subscriptions
                SET service_name = %s,
                    price = %s,
                    start_date = %s,
                    end_date = %s,
                    updated_at = NOW()
                WHERE id = %s
                RETURNING {SUBSCRIPTION_COLUMNS}
                """,
                (
                    fields["service_name"],
                    fields["price"],
                    fields["start_date"],
                    fields["end_date"],
                    subscription_id,
                ),
            )
            return await cursor.fetchone()


async def delete_subscription(connection: AsyncConnection, subscription_id: UUID) -> bool:
    """Delete one row; returns False when nothing matched."""
    with _storage_guard("delete"):
        async with connection.cursor() as cursor:
            await cursor.execute(
                "DELETE FROM subscriptions WHERE id = %s RETURNING id",
                (subscription_id,),
            )
            row = await cursor.fetchone()

    return row is not None


async def list_subscriptions(
    connection: AsyncConnection,
    subscription_filter: SubscriptionFilter,
    limit: int,
    offset: int,
) -> tuple[list[dict[str, Any]], int]:
    where_clause, params = build_filter_clause(subscription_filter)

    with _storage_guard("list"):
        async with connection.cursor() as cursor:
            await cursor.execute(
                f"SELECT COUNT(*) AS total FROM subscriptions WHERE {where_clause}",
                params,
            )
            count_row = await cursor.fetchone()

            await cursor.execute(
                f"""
                SELECT {SUBSCRIPTION_COLUMNS}
                FROM subscriptions
                WHERE {where_clause}
                ORDER BY created_at DESC, id DESC
                LIMIT %s OFFSET %s
                """,
                [*params, limit, offset],
            )
            rows = await cursor.fetchall()

    return rows, int(count_row["total"])


async def sum_cost_over_range(
    connection: AsyncConnection,
    subscription_filter: SubscriptionFilter,
    period: PeriodRange,
) -> int:
    """Generated months joined against active subscriptions, summed in SQL."""
    where_clause, params = build_filter_clause(subscription_filter, alias="s")

    with _storage_guard("sum cost"):
        async with connection.cursor() as cursor:
            await cursor.execute(
                f"""
                SELECT COALESCE(SUM(s.price), 0)::BIGINT AS total_cost
                FROM (
                    SELECT generate_series(%s::date, %s::date, INTERVAL '1 month')::date AS month_start
                ) AS months
                JOIN subscriptions AS s
                  ON s.start_date <= months.month_start
                 AND (s.end_date IS NULL OR s.end_date >= months.month_start)
                WHERE {where_clause}
                """,
                [period.start, period.end, *params],
            )
            row = await cursor.fetchone()

    return int(row["total_cost"])


async def fetch_cost_candidates(
    connection: AsyncConnection,
    subscription_filter: SubscriptionFilter,
    period: PeriodRange,
) -> list[dict[str, Any]]:
    """Rows that overlap the range at all; month counting happens in Python."""
    where_clause, params = build_filter_clause(subscription_filter)

    with _storage_guard("fetch cost candidates"):
        async with connection.cursor() as cursor:
            await cursor.execute(
                f"""
                SELECT {SUBSCRIPTION_COLUMNS}
                FROM subscriptions
                WHERE {where_clause}
                  AND start_date <= %s
                  AND (end_date IS NULL OR end_date >= %s)
                """,
                [*params, period.end, period.start],
            )
            return await cursor.fetchall()
