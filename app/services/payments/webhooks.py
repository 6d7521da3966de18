"""
Manejador de webhooks de pasarelas de pago.

Verifica la autenticidad de cada evento con el cliente de la pasarela,
lo traduce a un resultado de captura y lo entrega al mismo punto de
entrada de reconciliación que usa la captura síncrona.
"""

import json
import logging
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from app.core.logging_config import log_payment_event
from app.db.transaction import TransactionCoordinator
from app.domain.enums import PaymentMethod
from app.services.orders.interfaces import IOrderLedger
from app.services.payments.gateways.base import PaymentGatewayClient
from app.services.payments.gateways.paypal_client import parse_capture_resource
from app.services.payments.gateways.stripe_client import parse_payment_intent
from app.services.payments.reconciliation import PaymentReconciliationEngine
from app.services.payments.results import CaptureResult
from app.utils.error_handler import ConfigurationException, ValidationException, WebhookSignatureInvalidException

logger = logging.getLogger(__name__)

PAYPAL_SETTLEMENT_EVENTS = {"PAYMENT.CAPTURE.COMPLETED", "PAYMENT.CAPTURE.DENIED"}
STRIPE_SETTLEMENT_EVENTS = {"payment_intent.succeeded", "payment_intent.payment_failed"}


class PaymentWebhookService:
    """
    Procesador de webhooks de PayPal y Stripe.

    Los eventos sin pedido conocido o de tipos no soportados se reconocen
    (para que la pasarela no reintente) y solo se registran en el log.
    """

    def __init__(
        self,
        coordinator: TransactionCoordinator,
        order_ledger: IOrderLedger,
        reconciliation: PaymentReconciliationEngine,
        gateways: Mapping[PaymentMethod, PaymentGatewayClient],
    ):
        self.coordinator = coordinator
        self.order_ledger = order_ledger
        self.reconciliation = reconciliation
        self.gateways = dict(gateways)

    async def handle_paypal(self, headers: Mapping[str, str], raw_body: bytes) -> Dict[str, Any]:
        """
        Procesa un webhook de PayPal.

        Args:
            headers: Headers HTTP del webhook
            raw_body: Cuerpo sin modificar (necesario para la verificación)

        Returns:
            Dict: Resultado del procesamiento

        Raises:
            WebhookSignatureInvalidException: Si la firma no es válida
        """
        event = await self._verified_event(PaymentMethod.PAYPAL, headers, raw_body)
        event_type = event.get("event_type", "")
        resource = event.get("resource") or {}

        log_payment_event("paypal", event_type, resource.get("custom_id"), event_id=event.get("id"))

        if event_type not in PAYPAL_SETTLEMENT_EVENTS:
            logger.info(f"PayPal event {event_type} acknowledged without action")
            return self._ignored(event_type, "unsupported event")

        return await self._settle(
            PaymentMethod.PAYPAL,
            event_type,
            resource.get("custom_id"),
            lambda: parse_capture_resource(resource, raw=event),
        )

    async def handle_stripe(self, headers: Mapping[str, str], raw_body: bytes) -> Dict[str, Any]:
        """
        Procesa un webhook de Stripe.

        Raises:
            WebhookSignatureInvalidException: Si la firma no es válida
        """
        event = await self._verified_event(PaymentMethod.STRIPE, headers, raw_body)
        event_type = event.get("type", "")
        intent = (event.get("data") or {}).get("object") or {}
        tracking_code = (intent.get("metadata") or {}).get("tracking_code")

        log_payment_event("stripe", event_type, tracking_code, event_id=event.get("id"))

        if event_type not in STRIPE_SETTLEMENT_EVENTS:
            logger.info(f"Stripe event {event_type} acknowledged without action")
            return self._ignored(event_type, "unsupported event")

        return await self._settle(PaymentMethod.STRIPE, event_type, tracking_code, lambda: parse_payment_intent(intent))

    async def _verified_event(
        self, method: PaymentMethod, headers: Mapping[str, str], raw_body: bytes
    ) -> Dict[str, Any]:
        gateway = self.gateways.get(method)
        if gateway is None:
            raise ConfigurationException(f"Webhook received for unconfigured gateway {method.value}", setting="gateways")

        if not await gateway.verify_webhook_signature(headers, raw_body):
            logger.warning(f"Rejected {method.value} webhook with invalid signature")
            raise WebhookSignatureInvalidException(method.value)

        try:
            event = json.loads(raw_body)
        except ValueError as e:
            raise ValidationException(message="Webhook body is not valid JSON", field="body") from e
        if not isinstance(event, dict):
            raise ValidationException(message="Webhook body must be a JSON object", field="body")
        return event

    async def _settle(
        self,
        method: PaymentMethod,
        event_type: str,
        tracking_code: Optional[str],
        parse: Callable[[], CaptureResult],
    ) -> Dict[str, Any]:
        order_id, reason = await self._find_order(tracking_code)
        if order_id is None:
            logger.warning(f"{method.value} event {event_type} for {tracking_code or 'no tracking code'}: {reason}")
            return self._ignored(event_type, reason, tracking_code)

        result = await self.reconciliation.reconcile_capture(order_id, parse(), method)
        logger.info(f"{method.value} event {event_type} reconciled {tracking_code}: {result.outcome.value}")
        return {
            "status": "processed",
            "event_type": event_type,
            "tracking_code": tracking_code,
            "result": result.to_dict(),
        }

    async def _find_order(self, tracking_code: Optional[str]) -> Tuple[Optional[int], str]:
        if not tracking_code:
            return None, "event carries no tracking code"

        async with self.coordinator.transaction("webhook_order_lookup") as uow:
            order = await self.order_ledger.get_by_tracking_code(uow, tracking_code)

        if order is None:
            return None, "unknown order"
        return order.id, ""

    @staticmethod
    def _ignored(event_type: str, reason: str, tracking_code: Optional[str] = None) -> Dict[str, Any]:
        return {"status": "ignored", "event_type": event_type, "tracking_code": tracking_code, "reason": reason}
