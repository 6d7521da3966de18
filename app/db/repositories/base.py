"""
Base Repository for order lifecycle persistence.

This module provides the common pieces shared by every repository:
retry and logging decorators, statement execution with consistent error
translation, and table access verification.

Repositories never open or commit transactions themselves. Each method
receives the ``AsyncSession`` owned by the caller's unit of work, so a
whole logical operation commits or rolls back as one.
"""

import asyncio
import functools
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from app.utils.error_handler import DatabaseException, ResourceExhaustedException

logger = logging.getLogger(__name__)


def with_retry(
    max_attempts: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    exceptions: tuple = (DatabaseException,),
) -> Callable:
    """
    Decorator for retrying database operations with exponential backoff.

    Args:
        max_attempts: Maximum number of retry attempts
        delay: Initial delay between retries in seconds
        backoff: Multiplier for exponential backoff
        exceptions: Tuple of exceptions to catch and retry

    Returns:
        Decorated function with retry logic
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            current_delay = delay

            for attempt in range(max_attempts):
                try:
                    return await func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_attempts - 1:
                        logger.error(f"All {max_attempts} attempts failed for {func.__name__}")
                        raise
                    logger.warning(
                        f"Attempt {attempt + 1}/{max_attempts} failed for {func.__name__}: {e}. "
                        f"Retrying in {current_delay:.1f}s..."
                    )
                    await asyncio.sleep(current_delay)
                    current_delay *= backoff

        return wrapper

    return decorator


def log_operation(operation_name: Optional[str] = None) -> Callable:
    """
    Decorator for logging repository operations.

    Args:
        operation_name: Optional custom name for the operation

    Returns:
        Decorated function with logging
    """

    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        async def wrapper(self, *args, **kwargs):
            op_name = operation_name or f"{self.__class__.__name__}.{func.__name__}"
            logger.debug(f"Starting operation: {op_name}")

            try:
                result = await func(self, *args, **kwargs)
                logger.debug(f"Operation successful: {op_name}")
                return result
            except Exception as e:
                logger.debug(f"Operation failed: {op_name} - {type(e).__name__}: {e}")
                raise

        return wrapper

    return decorator


class BaseRepository:
    """
    Base repository for the order lifecycle tables.

    Subclasses declare the tables they depend on in ``tables`` and
    implement their domain queries on top of ``_execute``.
    """

    tables: Sequence[sa.Table] = ()

    def __init__(self):
        self._repository_name: str = self.__class__.__name__

    async def _execute(self, session: AsyncSession, statement, operation: str):
        """
        Execute a statement on the caller's session.

        Integrity errors propagate untouched so callers can react to
        specific constraint violations (e.g. tracking code uniqueness).

        Raises:
            ResourceExhaustedException: If no pooled connection was available
            DatabaseException: For any other database failure
        """
        try:
            return await session.execute(statement)
        except IntegrityError:
            raise
        except PoolTimeoutError as e:
            raise ResourceExhaustedException(operation=f"{self._repository_name}.{operation}") from e
        except SQLAlchemyError as e:
            logger.error(f"Error in {self._repository_name}.{operation}: {e}")
            raise DatabaseException(
                message=f"Database error during {operation}: {str(e)}",
                operation=f"{self._repository_name}.{operation}",
            ) from e

    @staticmethod
    def _row_to_dict(row: Any) -> Optional[dict]:
        return row._asdict() if row is not None else None

    async def verify_table_access(self, session: AsyncSession) -> None:
        """
        Verify access to the tables required by this repository.

        Raises:
            DatabaseException: If any table cannot be queried
        """
        for table in self.tables:
            await self._execute(session, sa.select(sa.literal(1)).select_from(table).limit(1), f"verify:{table.name}")
        logger.debug(f"{self._repository_name} table access verified: {[t.name for t in self.tables]}")


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for every timestamp column."""
    return datetime.now(timezone.utc)
