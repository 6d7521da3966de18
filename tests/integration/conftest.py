"""
Fixtures de integración sobre SQLite (aiosqlite).

Cada test recibe una base de datos en archivo, con el catálogo sembrado y
un contenedor completo cuyas pasarelas y notificador son dobles de prueba.
"""

from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from support import FakeGateway, make_database, seed_catalog

from app.core.config import Settings
from app.core.container import build_container
from app.domain.enums import PaymentMethod


@pytest_asyncio.fixture
async def database(tmp_path):
    """Base de datos SQLite con esquema y catálogo."""
    db = make_database(tmp_path / "orders.db")
    await db.initialize()
    await db.create_schema()
    await seed_catalog(db)
    yield db
    await db.close()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def notifier():
    return AsyncMock()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        UPLOAD_STAGING_DIR=str(tmp_path / "staging"),
        TRACKING_CODE_PREFIX="SEO",
        BUSINESS_TIMEZONE="UTC",
        POST_COMMIT_HOOK_TIMEOUT=1.0,
        POST_COMMIT_HOOKS_IN_BACKGROUND=False,
        DELIVERABLE_MAX_BYTES=1024 * 1024,
    )


@pytest.fixture
def container(settings, database, gateway, notifier):
    """Contenedor completo sobre la base de datos de prueba."""
    return build_container(settings, database=database, gateways={PaymentMethod.PAYPAL: gateway}, notifier=notifier)
