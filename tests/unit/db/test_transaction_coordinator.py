"""Tests unitarios para TransactionCoordinator y UnitOfWork."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError

from app.db.transaction import TransactionCoordinator
from app.utils.error_handler import DatabaseException, ResourceExhaustedException


@pytest.fixture
def session():
    """Sesión simulada que registra el orden de las llamadas."""
    mock = AsyncMock()
    mock.calls = []
    mock.commit.side_effect = lambda: mock.calls.append("commit")
    mock.rollback.side_effect = lambda: mock.calls.append("rollback")
    mock.close.side_effect = lambda: mock.calls.append("close")
    return mock


@pytest.fixture
def coordinator(session):
    database = MagicMock()
    database.get_session.return_value = session
    database.pool_timeout = 0.5
    return TransactionCoordinator(database, post_commit_timeout=0.1)


class TestTransactionScope:
    """Tests para commit, rollback y cierre de la sesión."""

    @pytest.mark.asyncio
    async def test_commit_on_success(self, coordinator, session):
        """Una salida normal hace commit y cierra la sesión."""
        async with coordinator.transaction("op") as uow:
            assert uow.session is session

        assert session.calls == ["commit", "close"]

    @pytest.mark.asyncio
    async def test_rollback_on_error(self, coordinator, session):
        """Cualquier excepción hace rollback, cierra y se propaga."""
        with pytest.raises(ValueError):
            async with coordinator.transaction("op"):
                raise ValueError("boom")

        assert session.calls == ["rollback", "close"]

    @pytest.mark.asyncio
    async def test_pool_timeout_is_resource_exhausted(self, coordinator, session):
        """Sin conexión disponible se lanza ResourceExhaustedException."""
        session.connection.side_effect = PoolTimeoutError("QueuePool limit reached")

        with pytest.raises(ResourceExhaustedException) as exc_info:
            async with coordinator.transaction("place_order"):
                pytest.fail("body must not run")

        assert exc_info.value.status_code == 503
        assert exc_info.value.is_retryable
        assert "close" in session.calls

    @pytest.mark.asyncio
    async def test_commit_failure_is_database_exception(self, coordinator, session):
        """Un fallo en el commit se traduce a DatabaseException tras rollback."""
        session.commit.side_effect = OperationalError("COMMIT", {}, Exception("disk I/O error"))

        with pytest.raises(DatabaseException):
            async with coordinator.transaction("op"):
                pass

        session.rollback.assert_awaited()


class TestPostCommitHooks:
    """Tests para los hooks posteriores al commit."""

    @pytest.mark.asyncio
    async def test_hooks_run_after_commit_in_order(self, coordinator, session):
        """Los hooks corren después del commit y en orden de registro."""

        async def first():
            session.calls.append("first")

        async def second():
            session.calls.append("second")

        async with coordinator.transaction("op") as uow:
            uow.add_post_commit_hook(first)
            uow.add_post_commit_hook(second)
            assert uow.pending_hooks == ["first", "second"]

        assert session.calls == ["commit", "close", "first", "second"]

    @pytest.mark.asyncio
    async def test_hooks_dropped_on_rollback(self, coordinator):
        """Un rollback descarta los hooks registrados."""
        hook = AsyncMock()

        with pytest.raises(RuntimeError):
            async with coordinator.transaction("op") as uow:
                uow.add_post_commit_hook(hook, name="notify")
                raise RuntimeError("fail")

        hook.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failing_hook_does_not_affect_others(self, coordinator):
        """Un hook que falla no impide los siguientes ni llega al llamador."""
        failing = AsyncMock(side_effect=ConnectionError("smtp down"))
        following = AsyncMock()

        async with coordinator.transaction("op") as uow:
            uow.add_post_commit_hook(failing, name="failing")
            uow.add_post_commit_hook(following, name="following")

        failing.assert_awaited_once()
        following.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_slow_hook_is_bounded(self, coordinator):
        """Un hook que excede el timeout se abandona."""
        following = AsyncMock()

        async def slow():
            await asyncio.sleep(5)

        async with coordinator.transaction("op") as uow:
            uow.add_post_commit_hook(slow, name="slow")
            uow.add_post_commit_hook(following, name="following")

        following.assert_awaited_once()


@pytest.fixture
def background_coordinator(session):
    database = MagicMock()
    database.get_session.return_value = session
    database.pool_timeout = 0.5
    return TransactionCoordinator(database, post_commit_timeout=1.0, run_hooks_in_background=True)


class TestBackgroundHooks:
    """Tests para hooks post-commit ejecutados en segundo plano."""

    @pytest.mark.asyncio
    async def test_transaction_does_not_wait_for_hooks(self, background_coordinator, session):
        """La operación termina antes que un hook lento; drain lo espera."""
        release = asyncio.Event()
        sent = []

        async def send_email():
            await release.wait()
            sent.append("email")

        async with background_coordinator.transaction("place_order") as uow:
            uow.add_post_commit_hook(send_email, name="notify_order_created")

        assert session.calls == ["commit", "close"]
        assert sent == []
        assert background_coordinator.pending_background_tasks == 1

        release.set()
        await background_coordinator.drain(timeout=1.0)

        assert sent == ["email"]
        assert background_coordinator.pending_background_tasks == 0

    @pytest.mark.asyncio
    async def test_drain_cancels_stuck_hooks(self, background_coordinator):
        """Un hook que no termina dentro del plazo de drain se cancela."""
        cancelled = asyncio.Event()

        async def stuck():
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        async with background_coordinator.transaction("op") as uow:
            uow.add_post_commit_hook(stuck, name="stuck")
        await asyncio.sleep(0)

        await background_coordinator.drain(timeout=0.05)

        assert cancelled.is_set()
        assert background_coordinator.pending_background_tasks == 0

    @pytest.mark.asyncio
    async def test_failing_background_hook_is_isolated(self, background_coordinator):
        """El fallo de un hook en segundo plano no impide los siguientes."""
        following = AsyncMock()

        async with background_coordinator.transaction("op") as uow:
            uow.add_post_commit_hook(AsyncMock(side_effect=RuntimeError("smtp down")), name="failing")
            uow.add_post_commit_hook(following, name="following")

        await background_coordinator.drain(timeout=1.0)
        following.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_rollback_schedules_nothing(self, background_coordinator):
        """Una unidad revertida no deja tareas en segundo plano."""
        hook = AsyncMock()

        with pytest.raises(ValueError):
            async with background_coordinator.transaction("op") as uow:
                uow.add_post_commit_hook(hook, name="hook")
                raise ValueError("boom")

        assert background_coordinator.pending_background_tasks == 0
        hook.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_drain_without_tasks_returns(self, background_coordinator):
        await background_coordinator.drain(timeout=0.01)
