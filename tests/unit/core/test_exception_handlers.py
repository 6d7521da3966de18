"""Tests unitarios para el mapeo de excepciones a respuestas HTTP."""

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from fastapi import FastAPI

from app.core.exception_handlers import RETRY_AFTER_SECONDS, configure_exception_handlers
from app.utils.error_handler import (
    AmountMismatchException,
    CustomerInUseException,
    DatabaseException,
    GatewayException,
    GatewayTimeoutException,
    InvalidQuantityException,
    InvalidTierException,
    InvalidTransitionException,
    OrderNotFoundException,
    PaymentAlreadySettledException,
    ReconciliationFailedException,
    ResourceExhaustedException,
    UnauthorizedException,
    ValidationException,
    WebhookSignatureInvalidException,
)

CASES = {
    "validation": (ValidationException("bad", field="name"), 422, "VALIDATION_ERROR"),
    "tier": (InvalidTierException("nope"), 400, "INVALID_TIER"),
    "quantity": (InvalidQuantityException(0, 100), 400, "INVALID_QUANTITY"),
    "not-found": (OrderNotFoundException(9), 404, "ORDER_NOT_FOUND"),
    "transition": (InvalidTransitionException(1, "completed", "cancelled"), 409, "INVALID_TRANSITION"),
    "in-use": (CustomerInUseException(1, 2), 409, "CUSTOMER_IN_USE"),
    "mismatch": (AmountMismatchException(1, Decimal("450"), "USD", Decimal("449.5"), "USD"), 400, "AMOUNT_MISMATCH"),
    "settled": (PaymentAlreadySettledException(1, "CAP-1", "CAP-2"), 409, "PAYMENT_ALREADY_SETTLED"),
    "reconciliation": (ReconciliationFailedException(1, "CAP-1", RuntimeError("x")), 500, "RECONCILIATION_FAILED"),
    "gateway": (GatewayException("down", gateway="paypal"), 502, "GATEWAY_ERROR"),
    "gateway-timeout": (GatewayTimeoutException("paypal", "capture", 15.0), 504, "GATEWAY_TIMEOUT"),
    "signature": (WebhookSignatureInvalidException("stripe"), 401, "INVALID_WEBHOOK_SIGNATURE"),
    "database": (DatabaseException("db down"), 503, "DATABASE_ERROR"),
    "exhausted": (ResourceExhaustedException("place_order", 2.0), 503, "RESOURCE_EXHAUSTED"),
    "unauthorized": (UnauthorizedException(), 401, "UNAUTHORIZED"),
}


def _app() -> FastAPI:
    app = FastAPI()
    configure_exception_handlers(app)

    @app.get("/raise/{name}")
    async def raise_named(name: str):
        raise CASES[name][0]

    @app.get("/crash")
    async def crash():
        raise RuntimeError("secret connection string")

    @app.get("/typed/{value}")
    async def typed(value: int):
        return {"value": value}

    return app


@pytest_asyncio.fixture
async def client():
    transport = httpx.ASGITransport(app=_app(), raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as http:
        yield http


class TestAppExceptionMapping:
    """Cada excepción de dominio tiene su código HTTP y error_code."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("name", sorted(CASES))
    async def test_status_and_error_code(self, client, name):
        _, status_code, error_code = CASES[name]
        response = await client.get(f"/raise/{name}", headers={"X-Request-ID": "req-1"})

        assert response.status_code == status_code
        body = response.json()
        assert body["error"] is True
        assert body["error_code"] == error_code
        assert body["path"] == f"/raise/{name}"
        assert body["request_id"] == "req-1"

    @pytest.mark.asyncio
    async def test_retryable_errors_carry_retry_after(self, client):
        """Errores transitorios incluyen Retry-After."""
        response = await client.get("/raise/exhausted")
        assert response.headers["Retry-After"] == str(RETRY_AFTER_SECONDS)
        assert response.json()["retryable"] is True

        response = await client.get("/raise/transition")
        assert "Retry-After" not in response.headers


class TestOtherErrors:
    @pytest.mark.asyncio
    async def test_request_validation_error(self, client):
        """Parámetros inválidos devuelven 422 con la lista de errores."""
        response = await client.get("/typed/abc")
        assert response.status_code == 422
        body = response.json()
        assert body["error_code"] == "VALIDATION_ERROR"
        assert body["errors"][0]["loc"] == ["path", "value"]

    @pytest.mark.asyncio
    async def test_not_found_route(self, client):
        response = await client.get("/missing")
        assert response.status_code == 404
        assert response.json()["error_type"] == "http_error"

    @pytest.mark.asyncio
    async def test_unhandled_exception_is_500(self, client):
        """Una excepción no prevista devuelve 500 con el formato estándar."""
        response = await client.get("/crash")
        assert response.status_code == 500
        assert response.json()["error_type"] == "internal_server_error"
