"""
PayPal REST client (Orders v2) over aiohttp.

Handles OAuth client-credentials tokens, order creation and capture,
capture refunds and webhook signature verification.
"""

import asyncio
import json
import logging
import time
import uuid
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import aiohttp
from aiohttp import BasicAuth, ClientTimeout

from app.core.logging_config import log_api_call
from app.domain.enums import PaymentMethod
from app.domain.value_objects.money import Money
from app.services.payments.gateways.base import PaymentGatewayClient
from app.services.payments.results import (
    CaptureFailed,
    CapturePending,
    CaptureResult,
    CaptureSucceeded,
    PaymentInitiation,
    RefundResult,
)
from app.utils.error_handler import GatewayException, GatewayTimeoutException

logger = logging.getLogger(__name__)

WEBHOOK_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_url": "paypal-cert-url",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}

PENDING_CAPTURE_STATUSES = {"PENDING"}


def parse_capture_resource(capture: Dict[str, Any], payer_id: Optional[str] = None, raw: Optional[dict] = None) -> CaptureResult:
    """
    Translate a PayPal capture object into a capture result.

    The same shape arrives in capture responses
    (``purchase_units[].payments.captures[]``) and as the ``resource`` of
    ``PAYMENT.CAPTURE.*`` webhook events.
    """
    raw_payload = raw if raw is not None else capture
    capture_id = capture.get("id")
    status = (capture.get("status") or "").upper()

    amount = None
    amount_data = capture.get("amount") or {}
    if amount_data.get("value") is not None:
        amount = Money.from_string(str(amount_data["value"]), amount_data.get("currency_code", "USD"))

    if status == "COMPLETED" and capture_id and amount is not None:
        return CaptureSucceeded(
            gateway_reference=capture_id,
            amount=amount,
            payer_id=payer_id,
            raw_payload=raw_payload,
            reported_amount=Decimal(str(amount_data["value"])),
        )

    if status in PENDING_CAPTURE_STATUSES:
        return CapturePending(gateway_reference=capture_id, status=status, raw_payload=raw_payload)

    reason = (capture.get("status_details") or {}).get("reason") or f"Capture status: {status or 'UNKNOWN'}"
    return CaptureFailed(
        gateway_reference=capture_id, reason=reason, raw_payload=raw_payload, amount=amount, payer_id=payer_id
    )


def parse_capture_response(order_data: Dict[str, Any]) -> CaptureResult:
    """Translate a PayPal order (after capture) into a capture result."""
    payer_id = (order_data.get("payer") or {}).get("payer_id")
    purchase_units = order_data.get("purchase_units") or []
    captures = ((purchase_units[0].get("payments") or {}).get("captures") or []) if purchase_units else []

    if not captures:
        return CaptureFailed(
            gateway_reference=order_data.get("id"),
            reason=f"No capture in order (status: {order_data.get('status', 'UNKNOWN')})",
            raw_payload=order_data,
            payer_id=payer_id,
        )

    return parse_capture_resource(captures[0], payer_id=payer_id, raw=order_data)


class PayPalGatewayClient(PaymentGatewayClient):
    """
    Client for the PayPal REST API.

    The access token is cached until ``token_refresh_ratio`` of its
    lifetime has passed. Concurrent refreshes are serialized by a lock;
    a redundant refresh is harmless.
    """

    name = "paypal"
    method = PaymentMethod.PAYPAL

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        base_url: str,
        webhook_id: Optional[str] = None,
        return_url: Optional[str] = None,
        cancel_url: Optional[str] = None,
        timeout: float = 15.0,
        token_refresh_ratio: float = 0.9,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        super().__init__(timeout=timeout)
        self.client_id = client_id
        self.client_secret = client_secret
        self.base_url = base_url.rstrip("/")
        self.webhook_id = webhook_id
        self.return_url = return_url
        self.cancel_url = cancel_url
        self.token_refresh_ratio = token_refresh_ratio

        self.session = session
        self._owns_session = session is None
        self._access_token: Optional[str] = None
        self._token_expires_at: float = 0.0
        self._token_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the HTTP session."""
        if self.session is None:
            self.session = aiohttp.ClientSession(
                timeout=ClientTimeout(total=self.timeout),
                headers={"Content-Type": "application/json", "Accept": "application/json"},
            )
            self._owns_session = True
            logger.info(f"PayPal client initialized for {self.base_url}")

    async def close(self) -> None:
        if self.session and self._owns_session:
            await self.session.close()
            logger.info("PayPal client closed")
        self.session = None

    # ------------------------- Authentication -------------------------

    def _token_is_valid(self) -> bool:
        return self._access_token is not None and time.monotonic() < self._token_expires_at

    async def authenticate(self) -> str:
        """
        Return a cached access token, fetching a new one when expired.

        Raises:
            GatewayTimeoutException: If the token endpoint does not answer in time
            GatewayException: If PayPal rejects the credentials
        """
        if self._token_is_valid():
            return self._access_token

        async with self._token_lock:
            if self._token_is_valid():
                return self._access_token

            data = await self._bounded(self._fetch_token(), "oauth2/token")
            expires_in = float(data.get("expires_in", 0))
            self._access_token = data["access_token"]
            self._token_expires_at = time.monotonic() + expires_in * self.token_refresh_ratio
            logger.debug(f"PayPal access token refreshed (expires_in={expires_in}s)")
            return self._access_token

    async def _fetch_token(self) -> Dict[str, Any]:
        await self.initialize()
        url = f"{self.base_url}/v1/oauth2/token"
        start = time.time()
        try:
            async with self.session.post(
                url,
                data={"grant_type": "client_credentials"},
                auth=BasicAuth(self.client_id, self.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
            ) as response:
                text = await response.text()
                log_api_call("POST", url, response.status, time.time() - start)
                data = self._decode(text, response.status, "/v1/oauth2/token")
                if response.status != 200 or "access_token" not in (data or {}):
                    raise GatewayException(
                        f"PayPal authentication failed: {(data or {}).get('error_description', 'unknown error')}",
                        gateway=self.name,
                        api_response_code=response.status,
                        endpoint="/v1/oauth2/token",
                    )
                return data
        except aiohttp.ClientError as e:
            raise GatewayException(f"Network error: {e}", gateway=self.name, endpoint="/v1/oauth2/token") from e

    def _decode(self, text: str, status: int, endpoint: str) -> Dict[str, Any]:
        """
        Parse a PayPal response body.

        Raises:
            GatewayException: If the body is not a JSON object (e.g. an HTML page from a proxy)
        """
        if not text:
            return {}
        try:
            data = json.loads(text)
        except ValueError as e:
            raise GatewayException(
                f"PayPal returned a non-JSON response (HTTP {status})",
                gateway=self.name,
                api_response_code=status,
                endpoint=endpoint,
            ) from e
        if not isinstance(data, dict):
            raise GatewayException(
                f"PayPal returned an unexpected response body (HTTP {status})",
                gateway=self.name,
                api_response_code=status,
                endpoint=endpoint,
            )
        return data

    # ------------------------- Requests -------------------------

    async def _request(
        self, method: str, path: str, payload: Optional[dict] = None, headers: Optional[dict] = None
    ) -> Dict[str, Any]:
        token = await self.authenticate()
        return await self._bounded(self._send(method, path, token, payload, headers), path)

    async def _send(
        self, method: str, path: str, token: str, payload: Optional[dict], headers: Optional[dict]
    ) -> Dict[str, Any]:
        await self.initialize()
        url = f"{self.base_url}{path}"
        request_headers = {"Authorization": f"Bearer {token}", **(headers or {})}
        start = time.time()
        try:
            async with self.session.request(method, url, json=payload, headers=request_headers) as response:
                text = await response.text()
                log_api_call(method, url, response.status, time.time() - start)
                data = self._decode(text, response.status, path)

                if response.status >= 400:
                    issue = ""
                    details = data.get("details") or []
                    if details:
                        issue = details[0].get("issue", "")
                    raise GatewayException(
                        f"PayPal {method} {path} failed: {data.get('message', response.reason)}"
                        + (f" ({issue})" if issue else ""),
                        gateway=self.name,
                        api_response_code=response.status,
                        endpoint=path,
                        details={"issue": issue, "debug_id": data.get("debug_id")},
                    )
                return data
        except aiohttp.ClientError as e:
            raise GatewayException(f"Network error: {e}", gateway=self.name, endpoint=path) from e

    # ------------------------- Payments -------------------------

    async def initiate_payment(self, amount: Money, reference: str, description: str) -> PaymentInitiation:
        """
        Create a PayPal order with intent CAPTURE.

        The tracking code travels as ``reference_id`` and ``custom_id`` so
        webhook events can be matched back to the order.
        """
        body = {
            "intent": "CAPTURE",
            "purchase_units": [
                {
                    "reference_id": reference,
                    "custom_id": reference,
                    "description": description[:127],
                    "amount": {"currency_code": amount.currency, "value": f"{amount.amount:.2f}"},
                }
            ],
            "application_context": {
                "return_url": self.return_url,
                "cancel_url": self.cancel_url,
                "shipping_preference": "NO_SHIPPING",
                "user_action": "PAY_NOW",
            },
        }
        data = await self._request("POST", "/v2/checkout/orders", body, headers={"PayPal-Request-Id": str(uuid.uuid4())})

        approval_url = next(
            (link["href"] for link in data.get("links", []) if link.get("rel") in ("approve", "payer-action")), None
        )
        logger.info(f"PayPal order {data.get('id')} created for {reference}")
        return PaymentInitiation(method=self.method, gateway_order_id=data["id"], approval_handle=approval_url)

    async def capture_payment(self, gateway_order_id: str) -> CaptureResult:
        """
        Capture an approved PayPal order.

        An order that was already captured (e.g. by a retried request) is
        read back instead, so the same capture result comes out.
        """
        path = f"/v2/checkout/orders/{gateway_order_id}/capture"
        try:
            data = await self._request(
                "POST",
                path,
                {},
                headers={"Prefer": "return=representation", "PayPal-Request-Id": f"capture-{gateway_order_id}"},
            )
        except GatewayException as e:
            if e.details.get("issue") != "ORDER_ALREADY_CAPTURED":
                raise
            logger.info(f"PayPal order {gateway_order_id} already captured, reading it back")
            data = await self._request("GET", f"/v2/checkout/orders/{gateway_order_id}")

        return parse_capture_response(data)

    async def refund_payment(self, gateway_reference: str, amount: Optional[Money] = None) -> RefundResult:
        body = {}
        if amount is not None:
            body["amount"] = {"currency_code": amount.currency, "value": f"{amount.amount:.2f}"}
        data = await self._request(
            "POST",
            f"/v2/payments/captures/{gateway_reference}/refund",
            body,
            headers={"PayPal-Request-Id": f"refund-{gateway_reference}"},
        )
        return RefundResult(
            gateway_reference=gateway_reference,
            refund_id=data.get("id", ""),
            status=data.get("status", "UNKNOWN"),
            raw_payload=data,
        )

    async def verify_webhook_signature(
        self, headers: Mapping[str, str], raw_body: bytes, secret: Optional[str] = None
    ) -> bool:
        """
        Verify a webhook through PayPal's verify-webhook-signature API.

        ``secret`` is the webhook ID registered with PayPal.

        Raises:
            GatewayTimeoutException: If PayPal does not answer in time
        """
        webhook_id = secret or self.webhook_id
        if not webhook_id:
            logger.error("PayPal webhook received but no webhook id is configured")
            return False

        lowered = {key.lower(): value for key, value in headers.items()}
        missing = [header for header in WEBHOOK_HEADERS.values() if not lowered.get(header)]
        if missing:
            logger.warning(f"PayPal webhook missing headers: {missing}")
            return False

        try:
            event = json.loads(raw_body)
        except ValueError:
            logger.warning("PayPal webhook body is not valid JSON")
            return False

        body = {field: lowered[header] for field, header in WEBHOOK_HEADERS.items()}
        body.update({"webhook_id": webhook_id, "webhook_event": event})

        try:
            data = await self._request("POST", "/v1/notifications/verify-webhook-signature", body)
        except GatewayException as e:
            if isinstance(e, GatewayTimeoutException):
                raise
            logger.warning(f"PayPal webhook verification call failed: {e}")
            return False

        return data.get("verification_status") == "SUCCESS"
