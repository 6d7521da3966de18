"""
Manejadores de excepciones centralizados para la aplicación FastAPI.

Este módulo define todos los manejadores de excepciones personalizados y globales,
proporcionando respuestas consistentes y logging apropiado para diferentes tipos de errores.
"""

import logging
import traceback
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import get_settings
from app.utils.error_handler import (
    AppException,
    ErrorSeverity,
    ValidationException,
)

settings = get_settings()
logger = logging.getLogger(__name__)

# Segundos sugeridos en Retry-After para errores transitorios
RETRY_AFTER_SECONDS = 2


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Manejador para excepciones personalizadas de la aplicación.

    Args:
        request: Request de FastAPI
        exc: Excepción personalizada de la app

    Returns:
        JSONResponse: Respuesta JSON con error formateado
    """
    log_level = logging.ERROR if exc.status_code >= 500 or exc.severity == ErrorSeverity.CRITICAL else logging.WARNING
    logger.log(
        log_level,
        f"App Exception: {exc.message} - "
        f"Code: {exc.error_code.value} - "
        f"URL: {request.url} - "
        f"Details: {exc.details}",
    )

    headers = {"Retry-After": str(RETRY_AFTER_SECONDS)} if exc.is_retryable else None

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "error_type": "application_error",
            "error_code": exc.error_code.value,
            "message": exc.message,
            "retryable": exc.is_retryable,
            "details": exc.details if settings.DEBUG else None,
            "path": str(request.url.path),
            "timestamp": _timestamp(),
            "request_id": _request_id(request),
        },
        headers=headers,
    )


async def validation_exception_handler(request: Request, exc: ValidationException) -> JSONResponse:
    """
    Manejador para errores de validación de datos.

    Args:
        request: Request de FastAPI
        exc: Excepción de validación

    Returns:
        JSONResponse: Respuesta JSON con detalles de validación
    """
    logger.warning(
        f"Validation Exception: {exc.message} - "
        f"Field: {exc.field} - "
        f"Value: {exc.invalid_value} - "
        f"URL: {request.url}"
    )

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "error_type": "validation_error",
            "error_code": exc.error_code.value,
            "message": exc.message,
            "field": exc.field,
            "invalid_value": str(exc.invalid_value) if settings.DEBUG and exc.invalid_value is not None else None,
            "expected_format": exc.expected_format,
            "details": exc.details if settings.DEBUG else None,
            "path": str(request.url.path),
            "timestamp": _timestamp(),
            "request_id": _request_id(request),
        },
    )


async def request_validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Manejador para errores de validación del cuerpo/parámetros (pydantic)."""
    logger.warning(f"Request Validation Error: {exc.errors()} - URL: {request.url}")

    return JSONResponse(
        status_code=422,
        content={
            "error": True,
            "error_type": "validation_error",
            "error_code": "VALIDATION_ERROR",
            "message": "Request validation failed",
            "errors": [
                {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
                for error in exc.errors()
            ],
            "path": str(request.url.path),
            "timestamp": _timestamp(),
            "request_id": _request_id(request),
        },
    )


async def starlette_http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """
    Manejador para HTTPException de Starlette/FastAPI.

    Args:
        request: Request de FastAPI
        exc: StarletteHTTPException

    Returns:
        JSONResponse: Respuesta JSON estandarizada
    """
    logger.warning(f"HTTP Exception: {exc.status_code} - {exc.detail} - URL: {request.url}")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": True,
            "error_type": "http_error",
            "status_code": exc.status_code,
            "message": exc.detail,
            "path": str(request.url.path),
            "timestamp": _timestamp(),
            "request_id": _request_id(request),
        },
        headers=getattr(exc, "headers", None),
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Manejador global para excepciones no capturadas.

    Args:
        request: Request de FastAPI
        exc: Excepción no manejada

    Returns:
        JSONResponse: Respuesta JSON de error interno
    """
    # Log completo del error con traceback
    logger.error(
        f"Unhandled Exception: {str(exc)} - "
        f"Type: {type(exc).__name__} - "
        f"URL: {request.url}",
        exc_info=exc,
    )

    # Respuesta genérica (sin exponer detalles internos)
    error_message = "Internal server error occurred"
    if settings.DEBUG:
        error_message = f"{type(exc).__name__}: {str(exc)}"

    return JSONResponse(
        status_code=500,
        content={
            "error": True,
            "error_type": "internal_server_error",
            "message": error_message,
            "path": str(request.url.path),
            "timestamp": _timestamp(),
            "request_id": _request_id(request),
            "traceback": "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            if settings.DEBUG
            else None,
        },
    )


def configure_exception_handlers(app: FastAPI) -> None:
    """
    Configura todos los manejadores de excepciones de la aplicación.

    Args:
        app: Instancia de FastAPI
    """
    logger.info("Configurando manejadores de excepciones...")

    # Manejadores específicos (orden de especificidad)
    app.add_exception_handler(ValidationException, validation_exception_handler)
    app.add_exception_handler(AppException, app_exception_handler)

    # Manejadores HTTP estándar
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, starlette_http_exception_handler)

    # Manejador global (debe ser el último)
    app.add_exception_handler(Exception, global_exception_handler)

    logger.info("Manejadores de excepciones configurados correctamente")


def get_error_context(request: Request) -> Dict[str, Any]:
    """
    Extrae contexto útil de la request para logging de errores.

    Args:
        request: Request de FastAPI

    Returns:
        Dict con contexto del error
    """
    return {
        "method": request.method,
        "path": request.url.path,
        "query_params": dict(request.query_params),
        "client": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
        "request_id": _request_id(request),
        "timestamp": _timestamp(),
    }
