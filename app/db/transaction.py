"""
Transaction Coordinator and Unit of Work.

Every multi-step order or payment operation runs inside exactly one
``TransactionCoordinator.transaction(...)`` block:

    async with coordinator.transaction("place_order") as uow:
        customer_id = await registry.upsert_customer(uow, ...)
        order = await ledger.create_order(uow, ...)
        uow.add_post_commit_hook(lambda: notifier.notify_order_created(order, customer))

The block checks out one pooled connection, commits on normal exit and
rolls back on any exception. The session is closed on every exit path.
Post-commit hooks run only after a successful commit, each one isolated
from the others and from the caller. With ``run_hooks_in_background`` the
hooks of a unit run in a tracked task, so the caller does not wait for
them; ``drain()`` waits for those tasks at shutdown.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.ext.asyncio import AsyncSession

from app.db.connection import Database
from app.utils.error_handler import DatabaseException, ResourceExhaustedException

logger = logging.getLogger(__name__)

PostCommitHook = Callable[[], Awaitable[None]]


class UnitOfWork:
    """
    Handle for one logical operation's transaction.

    Attributes:
        session: Session bound to the checked-out connection
        operation: Name of the logical operation (for logs)
    """

    def __init__(self, session: AsyncSession, operation: str):
        self.session = session
        self.operation = operation
        self._post_commit_hooks: List[Tuple[str, PostCommitHook]] = []

    def add_post_commit_hook(self, hook: PostCommitHook, name: Optional[str] = None) -> None:
        """
        Register an async callable to run after a successful commit.

        Hooks registered on a unit that rolls back are discarded.
        """
        self._post_commit_hooks.append((name or getattr(hook, "__name__", "post_commit_hook"), hook))

    @property
    def pending_hooks(self) -> List[str]:
        return [name for name, _ in self._post_commit_hooks]

    def drain_hooks(self) -> List[Tuple[str, PostCommitHook]]:
        hooks, self._post_commit_hooks = self._post_commit_hooks, []
        return hooks

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Run a block inside a nested transaction (SAVEPOINT)."""
        async with self.session.begin_nested():
            yield


class TransactionCoordinator:
    """
    Opens, commits and rolls back units of work over a bounded pool.
    """

    def __init__(self, database: Database, post_commit_timeout: float = 30.0, run_hooks_in_background: bool = False):
        self.database = database
        self.post_commit_timeout = post_commit_timeout
        self.run_hooks_in_background = run_hooks_in_background
        self._background_tasks: Set[asyncio.Task] = set()

    @asynccontextmanager
    async def transaction(self, operation: str) -> AsyncIterator[UnitOfWork]:
        """
        Scope one logical operation in a single transaction.

        Raises:
            ResourceExhaustedException: If no connection is available within the pool timeout
            DatabaseException: If the commit itself fails
        """
        session = self.database.get_session()
        uow = UnitOfWork(session, operation)

        try:
            try:
                await session.connection()
            except PoolTimeoutError as e:
                logger.warning(f"Connection pool exhausted for '{operation}'")
                raise ResourceExhaustedException(operation=operation, timeout=self.database.pool_timeout) from e

            yield uow

            try:
                await session.commit()
            except IntegrityError:
                raise
            except SQLAlchemyError as e:
                raise DatabaseException(message=f"Commit failed for '{operation}': {e}", operation=operation) from e

        except BaseException:
            dropped = uow.drain_hooks()
            await session.rollback()
            if dropped:
                logger.debug(f"Rolled back '{operation}', dropped hooks: {[name for name, _ in dropped]}")
            raise
        finally:
            await session.close()

        logger.debug(f"Committed '{operation}'")
        if self.run_hooks_in_background and uow.pending_hooks:
            self._schedule_hooks(uow)
        else:
            await self.run_post_commit_hooks(uow)

    @property
    def pending_background_tasks(self) -> int:
        return len(self._background_tasks)

    def _schedule_hooks(self, uow: UnitOfWork) -> None:
        task = asyncio.create_task(self.run_post_commit_hooks(uow), name=f"post-commit:{uow.operation}")
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def drain(self, timeout: Optional[float] = None) -> None:
        """
        Wait for hooks still running in the background.

        Tasks that do not finish within ``timeout`` are cancelled.
        """
        if not self._background_tasks:
            return

        _, pending = await asyncio.wait(set(self._background_tasks), timeout=timeout)
        for task in pending:
            task.cancel()
            logger.warning(f"Cancelled unfinished post-commit task '{task.get_name()}'")
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

    async def run_post_commit_hooks(self, uow: UnitOfWork) -> None:
        """Run registered hooks sequentially, logging and swallowing their failures."""
        for name, hook in uow.drain_hooks():
            try:
                await asyncio.wait_for(hook(), timeout=self.post_commit_timeout)
            except asyncio.TimeoutError:
                logger.error(f"Post-commit hook '{name}' of '{uow.operation}' timed out after {self.post_commit_timeout}s")
            except Exception as e:
                logger.error(f"Post-commit hook '{name}' of '{uow.operation}' failed: {e}", exc_info=True)
