"""
Configuración personalizada de OpenAPI/Swagger para la aplicación FastAPI.

Este módulo maneja la configuración de la documentación automática de la API,
incluyendo tags, esquemas de seguridad y respuestas de error comunes.
"""

import logging
from typing import Any, Dict

from fastapi import FastAPI
from fastapi.openapi.utils import get_openapi

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def get_custom_openapi_schema(app: FastAPI) -> Dict[str, Any]:
    """
    Genera esquema OpenAPI personalizado con información adicional.

    Args:
        app: Instancia de FastAPI

    Returns:
        Dict: Esquema OpenAPI personalizado
    """
    if app.openapi_schema:
        return app.openapi_schema

    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )

    openapi_schema["tags"] = get_custom_tags()

    # Se fusiona con los componentes generados por FastAPI
    components = openapi_schema.setdefault("components", {})
    components.setdefault("securitySchemes", {}).update(get_security_schemes())
    components.setdefault("schemas", {}).update(get_custom_schemas())

    openapi_schema["x-app-info"] = {
        "environment": settings.ENVIRONMENT,
        "version": settings.APP_VERSION,
        "features": {
            "paypal": settings.paypal_enabled,
            "stripe": settings.stripe_enabled,
            "email": settings.SMTP_ENABLED,
        },
    }

    app.openapi_schema = openapi_schema
    return openapi_schema


def get_custom_tags() -> list:
    """
    Define tags personalizados para organizar los endpoints.

    Returns:
        List: Lista de tags con descripciones
    """
    return [
        {"name": "Root", "description": "Endpoints básicos de información y estado"},
        {"name": "Health", "description": "Salud de la base de datos y pasarelas configuradas"},
        {"name": "Catalog", "description": "Tiers de servicio activos y sus precios"},
        {"name": "Orders", "description": "Creación de pedidos, apertura y captura de pagos"},
        {
            "name": "Webhooks",
            "description": "Notificaciones de PayPal y Stripe (verificadas por firma)",
            "externalDocs": {
                "description": "PayPal Webhooks",
                "url": "https://developer.paypal.com/api/rest/webhooks/",
            },
        },
        {"name": "Administration", "description": "Gestión de pedidos (requiere X-Admin-Token)"},
    ]


def get_security_schemes() -> Dict[str, Any]:
    """
    Define esquemas de seguridad para la API.

    Returns:
        Dict: Esquemas de seguridad OpenAPI
    """
    return {
        "AdminToken": {
            "type": "apiKey",
            "in": "header",
            "name": "X-Admin-Token",
            "description": "Token de administración",
        },
        "PayPalWebhook": {
            "type": "apiKey",
            "in": "header",
            "name": "PAYPAL-TRANSMISSION-SIG",
            "description": "Firma de transmisión verificada contra la API de PayPal",
        },
        "StripeWebhook": {
            "type": "apiKey",
            "in": "header",
            "name": "Stripe-Signature",
            "description": "Firma HMAC de Stripe",
        },
    }


def get_custom_schemas() -> Dict[str, Any]:
    """
    Define esquemas personalizados reutilizables.

    Returns:
        Dict: Esquemas personalizados
    """
    return {
        "ErrorResponse": {
            "type": "object",
            "properties": {
                "error": {"type": "boolean", "example": True},
                "error_type": {"type": "string", "example": "application_error"},
                "error_code": {"type": "string", "example": "INVALID_TRANSITION"},
                "message": {"type": "string", "example": "Cannot transition order 7 from 'completed' to 'cancelled'"},
                "retryable": {"type": "boolean", "example": False},
                "details": {"type": "object"},
                "path": {"type": "string", "example": "/api/v1/admin/orders/7/status"},
                "timestamp": {"type": "string", "format": "date-time"},
                "request_id": {"type": "string", "example": "abc12345"},
            },
            "required": ["error", "message", "timestamp"],
        },
    }


def configure_openapi(app: FastAPI) -> None:
    """
    Configura OpenAPI personalizado para la aplicación.

    Args:
        app: Instancia de FastAPI
    """

    def custom_openapi():
        return get_custom_openapi_schema(app)

    if settings.DEBUG or settings.ENABLE_DOCS:
        app.openapi = custom_openapi
        logger.info("Documentación OpenAPI configurada y habilitada")
    else:
        logger.info("Documentación OpenAPI deshabilitada")
