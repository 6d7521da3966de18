"""
Gestión del ciclo de vida de la aplicación FastAPI.

Este módulo maneja los eventos de startup y shutdown de la aplicación,
incluyendo construcción del contenedor, verificación de conexiones y limpieza.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from app.core.config import get_settings
from app.core.container import Container, build_container
from app.core.logging_config import setup_logging

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Gestión del ciclo de vida de la aplicación.
    Maneja eventos de startup y shutdown de manera ordenada.

    Si ``app.state.container`` ya existe (pruebas) se usa tal cual.

    Args:
        app: Instancia de FastAPI
    """
    # === STARTUP ===
    logger.info(f"Iniciando {settings.APP_NAME} v{settings.APP_VERSION}...")

    try:
        # 1. Configurar logging
        await startup_configure_logging()

        # 2. Verificar configuración
        await startup_verify_configuration()

        # 3. Construir e inicializar colaboradores
        container = await startup_initialize_container(app)

        # 4. Verificaciones finales
        await startup_final_checks(container)

        logger.info("Aplicación iniciada correctamente")

    except Exception as e:
        logger.error(f"Error durante el startup: {e}")
        await cleanup_on_startup_failure(app)
        raise

    # === YIELD (aplicación corriendo) ===
    yield

    # === SHUTDOWN ===
    logger.info(f"Cerrando {settings.APP_NAME}...")

    try:
        await shutdown_close_container(app)
        logger.info("Aplicación cerrada correctamente")

    except Exception as e:
        logger.error(f"Error durante el shutdown: {e}")


# === FUNCIONES DE STARTUP ===


async def startup_configure_logging():
    """Configura el sistema de logging."""
    try:
        setup_logging()
        logger.info("Sistema de logging configurado")
    except Exception as e:
        print(f"Error configurando logging: {e}")
        raise


async def startup_verify_configuration():
    """Verifica que la configuración sea coherente."""
    if settings.is_production and not settings.ADMIN_API_TOKEN:
        raise ValueError("ADMIN_API_TOKEN es obligatorio en producción")

    if settings.paypal_enabled and not settings.PAYPAL_WEBHOOK_ID:
        logger.warning("PAYPAL_WEBHOOK_ID no configurado - los webhooks de PayPal serán rechazados")

    if settings.stripe_enabled and not settings.STRIPE_WEBHOOK_SECRET:
        logger.warning("STRIPE_WEBHOOK_SECRET no configurado - los webhooks de Stripe serán rechazados")

    if settings.SMTP_ENABLED and not settings.SMTP_HOST:
        logger.warning("SMTP_ENABLED sin SMTP_HOST - se usará notificación por log")

    logger.info(f"Configuración verificada - Base de datos: {settings.database_url_masked}")


async def startup_initialize_container(app: FastAPI) -> Container:
    """Construye el contenedor (si no existe) e inicializa base de datos y pasarelas."""
    container = getattr(app.state, "container", None)
    if container is None:
        container = build_container(settings)
        app.state.container = container

    await container.start()
    logger.info(f"Servicios inicializados - Pasarelas: {[method.value for method in container.gateways]}")
    return container


async def startup_final_checks(container: Container):
    """Ejecuta verificaciones finales antes de aceptar tráfico."""
    health = await container.database.health_check()
    if not health["test_passed"]:
        raise ConnectionError(f"Base de datos no disponible: {health['error']}")

    logger.info(f"Health check de base de datos: {health['response_time_ms']}ms")


async def cleanup_on_startup_failure(app: FastAPI):
    """Limpia recursos si falla el startup."""
    container = getattr(app.state, "container", None)
    if container is None:
        return

    try:
        await container.close()
    except Exception as e:
        logger.error(f"Error en cleanup de startup: {e}")


# === FUNCIONES DE SHUTDOWN ===


async def shutdown_close_container(app: FastAPI):
    """Cierra pasarelas, archivos temporales y la base de datos."""
    container = getattr(app.state, "container", None)
    if container is not None:
        await container.close()
        logger.info("Conexiones cerradas")
