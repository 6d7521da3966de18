"""
Configuración centralizada de routers para la aplicación FastAPI.

Este módulo se encarga de registrar todos los routers de la API,
configurar endpoints base y organizar las rutas de manera estructurada.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.api.v1.endpoints.admin import router as admin_router
from app.api.v1.endpoints.catalog import router as catalog_router
from app.api.v1.endpoints.orders import router as orders_router
from app.api.v1.endpoints.webhooks import router as webhooks_router
from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def create_root_endpoints(app: FastAPI) -> None:
    """
    Crea endpoints raíz de la aplicación.

    Args:
        app: Instancia de FastAPI
    """

    @app.get("/", tags=["Root"], summary="API Info")
    async def root():
        """
        Endpoint raíz que proporciona información básica de la API.

        Returns:
            Dict con información de la API
        """
        return {
            "message": settings.APP_NAME,
            "description": "Order lifecycle and payment reconciliation service",
            "version": settings.APP_VERSION,
            "status": "running",
            "documentation": "/docs" if (settings.DEBUG or settings.ENABLE_DOCS) else "disabled",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "endpoints": get_router_info()["base_paths"],
        }

    @app.get("/ping", tags=["Root"], summary="Simple Ping")
    async def ping():
        """
        Endpoint simple para verificar que la API responde.

        Returns:
            Dict con pong y timestamp
        """
        return {"message": "pong", "timestamp": datetime.now(timezone.utc).isoformat()}


def create_health_endpoints(app: FastAPI) -> None:
    """
    Crea endpoints de health check.

    Args:
        app: Instancia de FastAPI
    """

    @app.get("/health", tags=["Health"], summary="Health Check")
    async def health_check(request: Request):
        """
        Verifica la base de datos y reporta las pasarelas configuradas.

        Returns:
            JSONResponse con 200 si la base de datos responde, 503 si no
        """
        container = getattr(request.app.state, "container", None)
        if container is None:
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "error": "application not initialized",
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "version": settings.APP_VERSION,
                },
            )

        try:
            database = await container.database.health_check()
        except Exception as e:
            logger.error(f"Error en health check: {e}")
            return JSONResponse(
                status_code=503,
                content={
                    "status": "unhealthy",
                    "error": str(e),
                    "timestamp": datetime.now(timezone.utc).isoformat(),
                    "version": settings.APP_VERSION,
                },
            )

        healthy = database["test_passed"]
        return JSONResponse(
            status_code=200 if healthy else 503,
            content={
                "status": "healthy" if healthy else "unhealthy",
                "version": settings.APP_VERSION,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "services": {
                    "database": {
                        "status": "healthy" if healthy else "unhealthy",
                        "response_time_ms": database["response_time_ms"],
                        "pool": database["engine_info"],
                        "error": database["error"],
                    },
                    "gateways": [method.value for method in container.gateways],
                    "notifier": type(container.notifier).__name__,
                },
                "environment": settings.ENVIRONMENT,
            },
        )


def configure_api_v1_routers(app: FastAPI) -> None:
    """
    Configura todos los routers de la API v1.

    Args:
        app: Instancia de FastAPI
    """
    logger.info("Configurando routers de API v1...")

    app.include_router(
        catalog_router,
        prefix="/api/v1/catalog",
        tags=["Catalog"],
        responses={500: {"description": "Internal server error"}},
    )

    app.include_router(
        orders_router,
        prefix="/api/v1/orders",
        tags=["Orders"],
        responses={
            404: {"description": "Order not found"},
            409: {"description": "Illegal state transition"},
            422: {"description": "Invalid order data"},
            502: {"description": "Payment gateway error"},
        },
    )

    app.include_router(
        webhooks_router,
        prefix="/api/v1/webhooks",
        tags=["Webhooks"],
        responses={
            401: {"description": "Invalid webhook signature"},
            409: {"description": "Payment could not be reconciled"},
        },
    )

    app.include_router(
        admin_router,
        prefix="/api/v1/admin",
        tags=["Administration"],
        responses={401: {"description": "Admin access denied"}},
    )

    logger.info("Routers de API v1 configurados")


def configure_all_routers(app: FastAPI) -> None:
    """
    Configura todos los routers de la aplicación.

    Args:
        app: Instancia de FastAPI
    """
    create_root_endpoints(app)
    create_health_endpoints(app)
    configure_api_v1_routers(app)

    logger.info("Todos los routers configurados correctamente")


def get_router_info() -> Dict[str, Any]:
    """
    Obtiene información sobre los routers configurados.

    Returns:
        Dict con información de routers
    """
    return {
        "api_version": "v1",
        "base_paths": {
            "root": "/",
            "health": "/health",
            "catalog": "/api/v1/catalog",
            "orders": "/api/v1/orders",
            "webhooks": "/api/v1/webhooks",
            "admin": "/api/v1/admin",
        },
    }
