# app/db/connection.py
"""
Clase Database para gestión del engine asíncrono y del pool de conexiones.

Esta clase maneja únicamente la conexión, la configuración del pool
acotado y el ciclo de vida de las conexiones a la base de datos de pedidos.
"""

import logging
import time
from typing import Any, Callable, Dict, Iterable, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from app.db.repositories.base import with_retry
from app.db.schema import metadata
from app.utils.error_handler import DatabaseException

logger = logging.getLogger(__name__)

EngineHook = Callable[[AsyncEngine], None]


class Database:
    """
    Engine asíncrono con pool acotado y factory de sesiones.

    El pool impone un máximo de conexiones concurrentes
    (``pool_size + max_overflow``) y un tiempo máximo de espera
    (``pool_timeout``) para obtener una conexión.
    """

    def __init__(
        self,
        url: str,
        pool_size: int = 20,
        max_overflow: int = 0,
        pool_timeout: float = 2.0,
        pool_recycle: int = 3600,
        echo: bool = False,
        connect_args: Optional[Dict[str, Any]] = None,
        engine_hooks: Iterable[EngineHook] = (),
    ):
        """
        Args:
            url: URL de SQLAlchemy (``postgresql+asyncpg://...``)
            pool_size: Conexiones permanentes del pool
            max_overflow: Conexiones extra permitidas sobre pool_size
            pool_timeout: Segundos de espera por una conexión libre
            pool_recycle: Segundos tras los cuales se recicla una conexión
            echo: Log de queries SQL
            connect_args: Argumentos específicos del driver
            engine_hooks: Callbacks ejecutados al crear el engine (p. ej. listeners de eventos)
        """
        self.url = url
        self.pool_size = pool_size
        self.max_overflow = max_overflow
        self.pool_timeout = pool_timeout
        self.pool_recycle = pool_recycle
        self.echo = echo
        self.connect_args = connect_args or {}
        self.engine_hooks = list(engine_hooks)

        self.engine: Optional[AsyncEngine] = None
        self.session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._connection_tested = False

    @classmethod
    def from_settings(cls, settings) -> "Database":
        """Crea la instancia a partir de la configuración de la aplicación."""
        connect_args = {}
        if settings.DATABASE_URL.startswith("postgresql+asyncpg"):
            connect_args = {"server_settings": {"application_name": f"{settings.APP_NAME}_v{settings.APP_VERSION}"}}

        return cls(
            url=settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,
            pool_timeout=settings.DB_POOL_TIMEOUT,
            pool_recycle=settings.DB_POOL_RECYCLE,
            echo=settings.DB_ECHO,
            connect_args=connect_args,
        )

    @with_retry(max_attempts=3, delay=1.0)
    async def initialize(self) -> None:
        """
        Inicializa el engine de base de datos y el pool de conexiones.

        Raises:
            DatabaseException: Si falla la inicialización
        """
        if self.engine is not None:
            logger.info("Database connection already initialized")
            return

        try:
            logger.info("Initializing database connection...")

            self.engine = create_async_engine(
                self.url,
                poolclass=AsyncAdaptedQueuePool,
                pool_size=self.pool_size,
                max_overflow=self.max_overflow,
                pool_timeout=self.pool_timeout,
                pool_recycle=self.pool_recycle,
                pool_pre_ping=True,
                echo=self.echo,
                connect_args=self.connect_args,
            )

            for hook in self.engine_hooks:
                hook(self.engine)

            self.session_factory = async_sessionmaker(self.engine, class_=AsyncSession, expire_on_commit=False)

            await self._test_connection()

            logger.info(
                f"Database connection initialized (pool_size={self.pool_size}, "
                f"max_overflow={self.max_overflow}, pool_timeout={self.pool_timeout}s)"
            )

        except Exception as e:
            logger.error(f"Failed to initialize database connection: {e}")
            await self._cleanup_failed_initialization()
            raise DatabaseException(
                message=f"Failed to initialize database connection: {str(e)}",
                operation="initialize",
            ) from e

    async def _test_connection(self) -> None:
        """Prueba la conexión con un ``SELECT 1``."""
        async with self.engine.connect() as conn:
            result = await conn.execute(text("SELECT 1"))
            if result.scalar() != 1:
                raise DatabaseException(message="Connection test returned unexpected value", operation="test")
        self._connection_tested = True

    async def _cleanup_failed_initialization(self) -> None:
        """Limpia recursos en caso de fallo de inicialización."""
        if self.engine:
            await self.engine.dispose()
        self.engine = None
        self.session_factory = None
        self._connection_tested = False

    async def create_schema(self) -> None:
        """Crea las tablas que aún no existan."""
        self._require_initialized()
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.create_all)
        logger.info("Database schema ensured")

    async def drop_schema(self) -> None:
        """Elimina todas las tablas (solo para pruebas)."""
        self._require_initialized()
        async with self.engine.begin() as conn:
            await conn.run_sync(metadata.drop_all)

    def _require_initialized(self) -> None:
        if not self.is_initialized():
            raise DatabaseException(
                message="Database connection not initialized. Call initialize() first.",
                operation="session_creation",
            )

    def get_session(self) -> AsyncSession:
        """
        Obtiene una nueva sesión de base de datos.

        Returns:
            AsyncSession: Sesión asíncrona de SQLAlchemy

        Raises:
            DatabaseException: Si no hay conexión inicializada
        """
        self._require_initialized()
        return self.session_factory()

    def is_initialized(self) -> bool:
        return self.engine is not None and self.session_factory is not None and self._connection_tested

    async def close(self) -> None:
        """Cierra el engine y libera el pool."""
        logger.info("Closing database connection...")
        if self.engine:
            await self.engine.dispose()
            logger.info("Database engine disposed")

        self.engine = None
        self.session_factory = None
        self._connection_tested = False

    def get_engine_info(self) -> dict:
        """
        Obtiene información sobre el engine y el pool.

        Returns:
            dict: Información del pool de conexiones
        """
        if not self.engine:
            return {"status": "not_initialized"}

        pool = self.engine.pool

        return {
            "status": "initialized",
            "dialect": self.engine.dialect.name,
            "pool_size": getattr(pool, "size", lambda: 0)(),
            "checked_in": getattr(pool, "checkedin", lambda: 0)(),
            "checked_out": getattr(pool, "checkedout", lambda: 0)(),
            "overflow": getattr(pool, "overflow", lambda: 0)(),
            "pool_timeout": self.pool_timeout,
            "is_tested": self._connection_tested,
        }

    async def health_check(self) -> dict:
        """
        Realiza un health check de la conexión.

        Returns:
            dict: Estado de salud de la conexión
        """
        health_info = {
            "connection_initialized": self.is_initialized(),
            "engine_info": self.get_engine_info(),
            "test_passed": False,
            "response_time_ms": None,
            "error": None,
        }

        if not self.is_initialized():
            return health_info

        start_time = time.time()
        try:
            async with self.engine.connect() as conn:
                result = await conn.execute(text("SELECT 1"))
                health_info["test_passed"] = result.scalar() == 1
        except Exception as e:
            health_info["error"] = str(e)
            logger.error(f"Health check failed: {e}")
        health_info["response_time_ms"] = round((time.time() - start_time) * 1000, 2)

        return health_info

    def __repr__(self) -> str:
        return (
            f"Database(initialized={self.is_initialized()}, "
            f"pool_size={self.pool_size}, max_overflow={self.max_overflow})"
        )
