import logging
from collections.abc import AsyncIterator

from fastapi import HTTPException, Request
from psycopg import AsyncConnection
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool

from .config import Settings

logger = logging.getLogger(__name__)


class Database:
    """Owns the async connection pool for one application instance."""

    def __init__(self, settings: Settings) -> None:
        self.settings = settings
        self.pool: AsyncConnectionPool | None = None

    def _connection_kwargs(self) -> dict:
        kwargs: dict = {"autocommit": True, "row_factory": dict_row}
        if self.settings.db_statement_timeout_ms:
            # Server-side cap on every statement; a request never waits longer on one query.
            kwargs["options"] = f"-c statement_timeout={self.settings.db_statement_timeout_ms}"
        return kwargs

    async def open(self) -> None:
        # Keep app booting in non-DB contexts; endpoints will fail explicitly if used.
        if not self.settings.database_url:
            logger.warning("DATABASE_URL is not configured; storage endpoints are disabled")
            return

        self.pool = AsyncConnectionPool(
            conninfo=self.settings.database_url,
            open=False,
            min_size=self.settings.db_pool_min_size,
            max_size=self.settings.db_pool_max_size,
            kwargs=self._connection_kwargs(),
        )
        await self.pool.open()
        logger.info(
            "database pool opened (min_size=%s, max_size=%s)",
            self.settings.db_pool_min_size,
            self.settings.db_pool_max_size,
        )

    async def close(self) -> None:
        if self.pool is None:
            return

        await self.pool.close()
        self.pool = None
        logger.info("database pool closed")


async def get_db_connection(request: Request) -> AsyncIterator[AsyncConnection]:
    database: Database | None = getattr(request.app.state, "database", None)

    # Centralized guard to avoid obscure None-type errors in route handlers.
    if database is None or database.pool is None:
        raise HTTPException(status_code=500, detail="DATABASE_URL is not configured")

    async with database.pool.connection() as connection:
        yield connection
