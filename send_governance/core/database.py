"""
asyncpg pool shared by every PostgreSQL store.

Contents:
- _pool: process-wide pool, created lazily by init_db()
- init_db() / get_db_pool() / close_db(): pool lifecycle
- apply_schema(): run the idempotent DDL (APPLY_SCHEMA_ON_STARTUP)
- rows_affected(): row count from a command status string
- storage_errors(): translate driver errors into StorageUnavailableError
- storage_retry(): tenacity retry policy for transient storage failures

Pool sizing and timeouts come from settings:
- min_size / max_size: DB_POOL_MIN_SIZE / DB_POOL_MAX_SIZE
- command_timeout: STORAGE_TIMEOUT_SECONDS

Usage:
    # Lifespan startup
    await init_db()

    # In repositories
    pool = await get_db_pool()
    async with pool.acquire() as conn:
        async with conn.transaction():
            await conn.execute(...)

    # Retrying a transient failure once
    async for attempt in storage_retry():
        with attempt:
            ok = await store.increment_counter(...)

    # Lifespan shutdown
    await close_db()
"""

import asyncio
import json
import logging
from contextlib import contextmanager
from typing import Iterator, Optional, Type

import asyncpg
from asyncpg import Pool
from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from send_governance.core.config import get_settings
from send_governance.core.errors import StorageUnavailableError
from send_governance.sql import get_schema_statements


logger = logging.getLogger(__name__)


# =============================================================================
# Global Pool Singleton
# =============================================================================

# None until init_db() is called
_pool: Optional[Pool] = None

# Driver-level failures that mean "the store could not answer", as opposed to
# constraint violations or SQL errors that indicate a bug
TRANSIENT_DB_ERRORS = (
    asyncpg.PostgresConnectionError,
    asyncpg.InterfaceError,
    asyncpg.TooManyConnectionsError,
    asyncpg.DeadlockDetectedError,
    asyncpg.SerializationError,
    asyncpg.QueryCanceledError,
    asyncio.TimeoutError,
    OSError,
)


# =============================================================================
# Pool Lifecycle Functions
# =============================================================================

async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode jsonb columns (suppression metadata, result summaries) to dicts."""
    await conn.set_type_codec(
        'jsonb',
        encoder=json.dumps,
        decoder=json.loads,
        schema='pg_catalog',
    )


async def init_db() -> Pool:
    """
    Create the pool on first call; later calls return the same pool.

    Every connection gets the jsonb codec from _init_connection. Connection
    failures (asyncpg.PostgresError, OSError) propagate to the caller.
    """
    global _pool

    if _pool is None:
        settings = get_settings()

        _pool = await asyncpg.create_pool(
            dsn=settings.database_url,
            min_size=settings.db_pool_min_size,
            max_size=settings.db_pool_max_size,
            command_timeout=settings.storage_timeout_seconds,
            init=_init_connection,
        )
        logger.info(
            "Database pool created (min=%s, max=%s, timeout=%ss)",
            settings.db_pool_min_size,
            settings.db_pool_max_size,
            settings.storage_timeout_seconds,
        )

    return _pool


async def get_db_pool() -> Pool:
    """Return the shared pool, creating it if the lifespan has not."""
    global _pool

    if _pool is None:
        await init_db()

    return _pool


async def close_db() -> None:
    """Close the pool if one is open."""
    global _pool

    if _pool is not None:
        await _pool.close()
        _pool = None


# =============================================================================
# Command Status
# =============================================================================

def rows_affected(status: str) -> int:
    """Parse the row count out of an asyncpg command status ('DELETE 3' -> 3)."""
    try:
        return int(status.split()[-1])
    except (ValueError, IndexError, AttributeError):
        return 0


# =============================================================================
# Error Translation and Retry
# =============================================================================

@contextmanager
def storage_errors(
    operation: str,
    error_class: Type[StorageUnavailableError] = StorageUnavailableError,
) -> Iterator[None]:
    """
    Translate transient driver errors raised inside the block.

    Args:
        operation: Short description used in the error message and log line.
        error_class: StorageUnavailableError subclass to raise.

    Raises:
        StorageUnavailableError: When the wrapped code raises one of
            TRANSIENT_DB_ERRORS. Other exceptions propagate unchanged.
    """
    try:
        yield
    except TRANSIENT_DB_ERRORS as e:
        logger.warning(f"Storage failure during {operation}: {e!r}")
        raise error_class(f"Storage unavailable during {operation}") from e


def storage_retry(attempts: Optional[int] = None) -> AsyncRetrying:
    """
    Build the retry policy for storage round trips.

    Only StorageUnavailableError is retried; a confirmed result (a quota
    refusal, a suppression hit) is a return value and never re-attempted.

    Args:
        attempts: Retries after the first attempt. Defaults to
            STORAGE_RETRY_ATTEMPTS.

    Returns:
        AsyncRetrying: Iterate with ``async for attempt in storage_retry()``.
    """
    settings = get_settings()
    retries = settings.storage_retry_attempts if attempts is None else attempts

    return AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=settings.storage_retry_wait_seconds, max=1),
        retry=retry_if_exception_type(StorageUnavailableError),
        reraise=True,
    )


# =============================================================================
# Schema
# =============================================================================

async def apply_schema() -> int:
    """
    Create any missing governance tables and indexes.

    Every statement is idempotent, so this is safe on a migrated database.

    Returns:
        int: Number of statements executed.
    """
    statements = get_schema_statements()
    pool = await get_db_pool()

    async with pool.acquire() as conn:
        async with conn.transaction():
            for statement in statements:
                await conn.execute(statement)

    logger.info(f"Applied {len(statements)} schema statements")
    return len(statements)
