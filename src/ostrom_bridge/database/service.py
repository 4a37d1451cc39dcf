"""
Meter state persistence using PostgreSQL with asyncpg.
Handles the schema and all meter state reads and writes in one place.
"""

from datetime import datetime
from typing import Optional

import asyncpg

from ostrom_bridge.exceptions import DatabaseError
from ostrom_bridge.logging_config import get_logger
from ostrom_bridge.models.contract import MeterState

logger = get_logger(__name__)

CURRENT_SCHEMA_VERSION = 1


class DatabaseService:
    """Stores one meter state record per contract."""

    def __init__(self, database_url: str):
        self.database_url = database_url
        self._pool = None

    async def _get_pool(self) -> asyncpg.Pool:
        """Get or create connection pool."""
        if self._pool is None or self._pool.is_closing():
            self._pool = await asyncpg.create_pool(
                self.database_url,
                min_size=1,
                max_size=4,
                command_timeout=60
            )
        return self._pool

    async def close(self):
        """Close database connection pool."""
        if self._pool and not self._pool.is_closing():
            await self._pool.close()

    async def init(self) -> None:
        """Initialize database tables."""
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                current_version = await self._get_schema_version(conn)

                if current_version == 0:
                    await self._create_initial_schema(conn)
                    await self._set_schema_version(conn, CURRENT_SCHEMA_VERSION)
                    logger.info("Database initialized with schema version", version=CURRENT_SCHEMA_VERSION)

        except Exception as e:
            logger.error("Failed to initialize database", error=str(e))
            raise DatabaseError(f"Database initialization failed: {e}")

    async def _get_schema_version(self, conn: asyncpg.Connection) -> int:
        """Get current database schema version."""
        try:
            result = await conn.fetchval(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            )
            return result if result else 0
        except asyncpg.UndefinedTableError:
            # Table doesn't exist, this is a new database
            return 0

    async def _set_schema_version(self, conn: asyncpg.Connection, version: int) -> None:
        await conn.execute(
            "INSERT INTO schema_version (version, applied_at) VALUES ($1, $2)",
            version, datetime.now()
        )

    async def _create_initial_schema(self, conn: asyncpg.Connection) -> None:
        await conn.execute("""
            CREATE TABLE schema_version (
                version INTEGER PRIMARY KEY,
                applied_at TIMESTAMP NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """)

        await conn.execute("""
            CREATE TABLE meter_state (
                contract_id BIGINT PRIMARY KEY,
                cumulative_kwh DOUBLE PRECISION NOT NULL CHECK (cumulative_kwh >= 0),
                last_fetched_hour TIMESTAMPTZ NOT NULL,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP
            )
        """)

        logger.info("Initial database schema created")

    async def load_meter_state(self, contract_id: int) -> Optional[MeterState]:
        """Return the stored meter state, or None before the first backfill."""
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(
                    "SELECT cumulative_kwh, last_fetched_hour FROM meter_state WHERE contract_id = $1",
                    contract_id
                )

        except Exception as e:
            logger.error("Failed to load meter state", error=str(e), contract_id=contract_id)
            raise DatabaseError(f"Failed to load meter state: {e}")

        if not row:
            return None

        return MeterState(
            cumulative_kwh=float(row['cumulative_kwh']),
            last_fetched_hour=row['last_fetched_hour'],
        )

    async def save_meter_state(self, contract_id: int, state: MeterState) -> None:
        """Insert or replace the meter state of a contract."""
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                await conn.execute("""
                    INSERT INTO meter_state (contract_id, cumulative_kwh, last_fetched_hour, updated_at)
                    VALUES ($1, $2, $3, CURRENT_TIMESTAMP)
                    ON CONFLICT (contract_id) DO UPDATE SET
                        cumulative_kwh = EXCLUDED.cumulative_kwh,
                        last_fetched_hour = EXCLUDED.last_fetched_hour,
                        updated_at = EXCLUDED.updated_at
                """, contract_id, state.cumulative_kwh, state.last_fetched_hour)

            logger.debug(
                "Saved meter state",
                contract_id=contract_id,
                cumulative_kwh=round(state.cumulative_kwh, 3),
                last_fetched_hour=state.last_fetched_hour.isoformat(),
            )

        except Exception as e:
            logger.error("Failed to save meter state", error=str(e), contract_id=contract_id)
            raise DatabaseError(f"Failed to save meter state: {e}")

    async def health_check(self) -> bool:
        """Check database health."""
        try:
            pool = await self._get_pool()
            async with pool.acquire() as conn:
                result = await conn.fetchval(
                    "SELECT COUNT(*) FROM information_schema.tables WHERE table_name = 'meter_state'"
                )

                if result != 1:
                    logger.error("Meter state table not found")
                    return False

            return True

        except Exception as e:
            logger.error("Database health check failed", error=str(e))
            return False
