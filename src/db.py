"""
Database Manager - PostgreSQL state store.

Stores the desired spec and last known state of every managed resource,
keyed by (resource_type, resource_id), plus a history of lifecycle
operations.
"""

import asyncpg
import hashlib
import json
import logging
from typing import Any, Dict, List, Optional

from migrate import run_migrations
from plugins.base import OperationRecord

logger = logging.getLogger(__name__)


class DatabaseManager:
    """Manages PostgreSQL database operations for the provider."""

    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        min_pool_size: int = 2,
        max_pool_size: int = 10,
    ):
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.password = password
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.pool: Optional[asyncpg.Pool] = None

    async def connect(self):
        """Establish connection pool to PostgreSQL."""
        self.pool = await asyncpg.create_pool(
            host=self.host,
            port=self.port,
            database=self.database,
            user=self.user,
            password=self.password,
            min_size=self.min_pool_size,
            max_size=self.max_pool_size,
            command_timeout=60,
        )
        logger.info(
            f"Connected to PostgreSQL (pool: {self.min_pool_size}-{self.max_pool_size})"
        )

    async def close(self):
        """Close the connection pool."""
        if self.pool:
            await self.pool.close()
            logger.info("Closed PostgreSQL connection")

    def _ensure_connected(self) -> None:
        """Ensure the database connection pool is established."""
        if self.pool is None:
            raise RuntimeError(
                "Database not connected. Call connect() before performing operations."
            )

    async def initialize_schema(self) -> None:
        """Apply database migrations to bring schema up to date."""
        self._ensure_connected()
        await run_migrations(self.pool)
        logger.info("Database schema initialized")

    # ==================== State Methods ====================

    async def put_state(
        self,
        resource_type: str,
        resource_id: str,
        spec: Dict[str, Any],
        state: Dict[str, Any],
    ) -> int:
        """
        Insert or replace the stored state of a resource.

        Args:
            resource_type: Resource type name
            resource_id: Resource id as returned by the plugin
            spec: The desired spec that produced this state
            state: The state returned by the plugin

        Returns:
            The row id.
        """
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            row_id = await conn.fetchval(
                """
                INSERT INTO resource_states (
                    resource_type, resource_id, spec, state, spec_hash
                )
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (resource_type, resource_id) DO UPDATE
                SET spec = EXCLUDED.spec,
                    state = EXCLUDED.state,
                    spec_hash = EXCLUDED.spec_hash,
                    updated_at = NOW()
                RETURNING id
                """,
                resource_type,
                resource_id,
                json.dumps(spec),
                json.dumps(state),
                self._calculate_spec_hash(spec),
            )

            logger.debug(f"Stored state of {resource_type}/{resource_id}")
            return row_id

    async def get_state(
        self, resource_type: str, resource_id: str
    ) -> Optional[Dict[str, Any]]:
        """Get the stored record of a resource, or None if it is not managed."""
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT * FROM resource_states
                WHERE resource_type = $1 AND resource_id = $2
                """,
                resource_type,
                resource_id,
            )
            if not row:
                return None
            return self._parse_state_row(row)

    async def delete_state(self, resource_type: str, resource_id: str) -> bool:
        """
        Drop the stored state of a resource.

        Returns:
            True if a row was deleted.
        """
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            result = await conn.execute(
                """
                DELETE FROM resource_states
                WHERE resource_type = $1 AND resource_id = $2
                """,
                resource_type,
                resource_id,
            )

        deleted = result == "DELETE 1"
        if deleted:
            logger.info(f"Dropped state of {resource_type}/{resource_id}")
        return deleted

    async def list_states(
        self,
        resource_type: Optional[str] = None,
        limit: int = 100,
    ) -> List[Dict[str, Any]]:
        """List stored resources, optionally of one type."""
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            query = "SELECT * FROM resource_states WHERE 1=1"
            params = []
            param_count = 0

            if resource_type:
                param_count += 1
                query += f" AND resource_type = ${param_count}"
                params.append(resource_type)

            param_count += 1
            query += f" ORDER BY resource_type, resource_id LIMIT ${param_count}"
            params.append(limit)

            rows = await conn.fetch(query, *params)
            return [self._parse_state_row(row) for row in rows]

    # ==================== History Methods ====================

    async def record_operation(self, record: OperationRecord) -> None:
        """Record a lifecycle operation in history."""
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO operation_history (
                    resource_type, resource_id, operation, success,
                    error_message, duration_seconds, drift_detected
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7)
                """,
                record.resource_type,
                record.resource_id,
                record.operation.value,
                record.success,
                record.error_message,
                record.duration_seconds,
                record.drift_detected,
            )

    async def get_operation_history(
        self, resource_type: str, resource_id: str, limit: int = 10
    ) -> List[Dict[str, Any]]:
        """Get the most recent operations on a resource, newest first."""
        self._ensure_connected()
        async with self.pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT *
                FROM operation_history
                WHERE resource_type = $1 AND resource_id = $2
                ORDER BY operation_time DESC
                LIMIT $3
                """,
                resource_type,
                resource_id,
                limit,
            )

            return [dict(row) for row in rows]

    def _parse_state_row(self, row: asyncpg.Record) -> Dict[str, Any]:
        """
        Parse a resource_states row, converting JSON fields.

        asyncpg returns JSONB columns as strings unless a codec is set, so
        spec and state are decoded here.

        Args:
            row: An asyncpg.Record from a database query

        Returns:
            A dictionary with the row data, with JSON fields parsed
        """
        result = dict(row)
        result["spec"] = json.loads(result["spec"]) if result.get("spec") else {}
        result["state"] = json.loads(result["state"]) if result.get("state") else {}
        return result

    def _calculate_spec_hash(self, spec: Dict[str, Any]) -> str:
        """Calculate a hash of the spec for change detection."""
        spec_string = json.dumps(spec, sort_keys=True)
        return hashlib.sha256(spec_string.encode()).hexdigest()
