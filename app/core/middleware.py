"""
Configuración de Middleware para la aplicación FastAPI.

Este módulo centraliza toda la configuración de middleware incluyendo:
- CORS
- TrustedHost
- Request logging con request ID
- Security headers
"""

import logging
import time
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware

from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)


def configure_cors_middleware(app: FastAPI) -> None:
    """
    Configura middleware CORS para permitir requests cross-origin.

    Args:
        app: Instancia de FastAPI
    """
    allowed_origins = settings.ALLOWED_HOSTS or ["*"]

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=[
            "Accept",
            "Content-Type",
            "Authorization",
            "X-Admin-Token",
            "X-Admin-Id",
            "X-Request-ID",
        ],
        expose_headers=["X-Process-Time", "X-Request-ID"],
    )

    logger.info(f"CORS configurado - Origins permitidos: {allowed_origins}")


def configure_trusted_host_middleware(app: FastAPI) -> None:
    """
    Configura middleware TrustedHost para validar hosts permitidos.
    Solo se aplica fuera de modo debug.
    """
    if not settings.DEBUG and settings.ALLOWED_HOSTS:
        allowed_hosts = settings.ALLOWED_HOSTS + ["localhost", "127.0.0.1"]
        app.add_middleware(TrustedHostMiddleware, allowed_hosts=allowed_hosts)
        logger.info(f"TrustedHost configurado - Hosts permitidos: {allowed_hosts}")


def configure_request_logging_middleware(app: FastAPI) -> None:
    """
    Configura middleware para logging de todas las requests/responses.

    El request ID queda en ``request.state.request_id`` para que los
    manejadores de excepciones lo incluyan en la respuesta.
    """

    @app.middleware("http")
    async def log_requests_middleware(request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        request.state.request_id = request_id

        start_time = time.time()
        client_ip = get_client_ip(request)

        logger.info(f"[{request_id}] {request.method} {request.url.path} - Client: {client_ip}")

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = time.time() - start_time
            logger.error(
                f"[{request_id}] {request.method} {request.url.path} - Error: {str(e)} - Time: {process_time:.3f}s"
            )
            raise

        process_time = time.time() - start_time
        logger.info(
            f"[{request_id}] {request.method} {request.url.path} - "
            f"Status: {response.status_code} - Time: {process_time:.3f}s"
        )

        response.headers["X-Process-Time"] = f"{process_time:.3f}"
        response.headers["X-Request-ID"] = request_id

        if process_time > settings.SLOW_REQUEST_THRESHOLD:
            logger.warning(
                f"[{request_id}] Slow request detected: {process_time:.3f}s > {settings.SLOW_REQUEST_THRESHOLD}s"
            )

        return response


def configure_security_headers_middleware(app: FastAPI) -> None:
    """Configura middleware para agregar headers de seguridad."""

    @app.middleware("http")
    async def security_headers_middleware(request: Request, call_next):
        response = await call_next(request)

        security_headers = {
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }

        # Solo HSTS en producción con HTTPS
        if not settings.DEBUG and request.url.scheme == "https":
            security_headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        for header, value in security_headers.items():
            response.headers[header] = value

        return response


def configure_all_middleware(app: FastAPI) -> None:
    """
    Configura todos los middlewares de la aplicación.
    El orden importa: se ejecutan en orden inverso al que se agregan.
    """
    configure_security_headers_middleware(app)
    configure_request_logging_middleware(app)
    configure_trusted_host_middleware(app)
    configure_cors_middleware(app)

    logger.info("Todos los middlewares configurados correctamente")


def generate_request_id() -> str:
    """ID corto de 8 caracteres para correlacionar logs de una request."""
    return str(uuid.uuid4())[:8]


def get_client_ip(request: Request) -> str:
    """
    Obtiene la IP real del cliente considerando proxies.
    """
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    if request.client:
        return request.client.host

    return "unknown"
