"""
Contenedor de dependencias de la aplicación.

Construye una sola vez (en el lifespan) la base de datos, el coordinador
de transacciones, los repositorios, las pasarelas de pago, el notificador,
el almacén de archivos y los servicios de pedidos y pagos.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from app.core.config import Settings
from app.db.connection import Database
from app.db.repositories import (
    CatalogRepository,
    CustomerRepository,
    DeliverableRepository,
    OrderRepository,
    PaymentRepository,
    StatusHistoryRepository,
)
from app.db.transaction import TransactionCoordinator
from app.domain.enums import PaymentMethod
from app.services.file_store import LocalFileStore
from app.services.notifications import LoggingNotificationSender, SmtpNotificationSender
from app.services.orders.admin import OrderAdminService
from app.services.orders.catalog_reader import CatalogReader
from app.services.orders.fulfillment import FulfillmentService
from app.services.orders.managers.order_ledger import OrderLedger
from app.services.orders.managers.status_state_machine import StatusStateMachine
from app.services.orders.orchestrator import OrderPlacementService, create_placement_service
from app.services.orders.resolvers.customer_registry import CustomerRegistry
from app.services.payments.gateways import PaymentGatewayClient, PayPalGatewayClient, StripeGatewayClient
from app.services.payments.reconciliation import PaymentReconciliationEngine
from app.services.payments.webhooks import PaymentWebhookService

logger = logging.getLogger(__name__)


@dataclass
class Container:
    """Colaboradores compartidos por todas las requests."""

    settings: Settings
    database: Database
    coordinator: TransactionCoordinator
    catalog_reader: CatalogReader
    placement: OrderPlacementService
    reconciliation: PaymentReconciliationEngine
    webhooks: PaymentWebhookService
    fulfillment: FulfillmentService
    admin: OrderAdminService
    file_store: LocalFileStore
    notifier: object
    gateways: Dict[PaymentMethod, PaymentGatewayClient] = field(default_factory=dict)

    async def start(self) -> None:
        """Inicializa la base de datos y los clientes de pasarela."""
        await self.database.initialize()
        if self.settings.DB_AUTO_CREATE_SCHEMA:
            await self.database.create_schema()
            logger.info("Esquema de base de datos creado")

        for method, gateway in self.gateways.items():
            await gateway.initialize()
            logger.info(f"Pasarela {method.value} inicializada")

    async def close(self) -> None:
        """Espera las tareas post-commit, cierra pasarelas, limpia temporales y la base de datos."""
        if self.coordinator.pending_background_tasks:
            logger.info(f"Esperando {self.coordinator.pending_background_tasks} tarea(s) post-commit")
        await self.coordinator.drain(timeout=self.settings.POST_COMMIT_DRAIN_TIMEOUT)

        for method, gateway in self.gateways.items():
            try:
                await gateway.close()
            except Exception as e:
                logger.warning(f"Error cerrando pasarela {method.value}: {e}")

        removed = await self.file_store.cleanup_older_than(self.settings.STAGED_FILE_MAX_AGE_SECONDS)
        if removed:
            logger.info(f"{removed} archivo(s) temporales eliminados")

        await self.database.close()


def build_gateways(settings: Settings) -> Dict[PaymentMethod, PaymentGatewayClient]:
    """Crea los clientes de las pasarelas configuradas."""
    gateways: Dict[PaymentMethod, PaymentGatewayClient] = {}

    if settings.paypal_enabled:
        gateways[PaymentMethod.PAYPAL] = PayPalGatewayClient(
            client_id=settings.PAYPAL_CLIENT_ID,
            client_secret=settings.PAYPAL_CLIENT_SECRET,
            base_url=settings.paypal_base_url,
            webhook_id=settings.PAYPAL_WEBHOOK_ID,
            return_url=settings.PAYPAL_RETURN_URL,
            cancel_url=settings.PAYPAL_CANCEL_URL,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
            token_refresh_ratio=settings.GATEWAY_TOKEN_REFRESH_RATIO,
        )

    if settings.stripe_enabled:
        gateways[PaymentMethod.STRIPE] = StripeGatewayClient(
            secret_key=settings.STRIPE_SECRET_KEY,
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            timeout=settings.GATEWAY_TIMEOUT_SECONDS,
        )

    if not gateways:
        logger.warning("No hay pasarelas de pago configuradas")

    return gateways


def build_notifier(settings: Settings):
    """SMTP si está habilitado, si no solo log."""
    if settings.SMTP_ENABLED and settings.SMTP_HOST:
        return SmtpNotificationSender(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT,
            from_address=settings.EMAIL_FROM,
            from_name=settings.EMAIL_FROM_NAME,
        )
    return LoggingNotificationSender()


def build_container(
    settings: Settings,
    database: Optional[Database] = None,
    gateways: Optional[Dict[PaymentMethod, PaymentGatewayClient]] = None,
    notifier=None,
) -> Container:
    """
    Construye el grafo de dependencias.

    Args:
        settings: Configuración de la aplicación
        database: Base de datos ya creada (pruebas); por defecto desde settings
        gateways: Pasarelas a usar; por defecto las configuradas en settings
        notifier: Notificador a usar; por defecto SMTP o log

    Returns:
        Container: Colaboradores listos (sin inicializar)
    """
    database = database or Database.from_settings(settings)
    gateways = build_gateways(settings) if gateways is None else gateways
    notifier = notifier or build_notifier(settings)

    coordinator = TransactionCoordinator(
        database,
        post_commit_timeout=settings.POST_COMMIT_HOOK_TIMEOUT,
        run_hooks_in_background=settings.POST_COMMIT_HOOKS_IN_BACKGROUND,
    )

    order_repo = OrderRepository()
    history_repo = StatusHistoryRepository()
    payment_repo = PaymentRepository()
    deliverable_repo = DeliverableRepository()

    catalog_reader = CatalogReader(CatalogRepository(), currency=settings.DEFAULT_CURRENCY)
    customer_registry = CustomerRegistry(CustomerRepository())
    order_ledger = OrderLedger(
        order_repo,
        history_repo,
        tracking_prefix=settings.TRACKING_CODE_PREFIX,
        business_timezone=settings.BUSINESS_TIMEZONE,
        max_quantity=settings.ORDER_MAX_QUANTITY,
    )
    state_machine = StatusStateMachine(order_repo, history_repo)
    file_store = LocalFileStore(settings.UPLOAD_STAGING_DIR)

    reconciliation = PaymentReconciliationEngine(
        coordinator=coordinator,
        order_ledger=order_ledger,
        state_machine=state_machine,
        customer_registry=customer_registry,
        payment_repo=payment_repo,
        order_repo=order_repo,
        notifier=notifier,
        gateways=gateways,
        amount_tolerance=settings.AMOUNT_TOLERANCE,
    )

    return Container(
        settings=settings,
        database=database,
        coordinator=coordinator,
        catalog_reader=catalog_reader,
        placement=create_placement_service(
            coordinator=coordinator,
            catalog_reader=catalog_reader,
            customer_registry=customer_registry,
            order_ledger=order_ledger,
            notifier=notifier,
            gateways=gateways,
        ),
        reconciliation=reconciliation,
        webhooks=PaymentWebhookService(coordinator, order_ledger, reconciliation, gateways),
        fulfillment=FulfillmentService(
            coordinator=coordinator,
            state_machine=state_machine,
            customer_registry=customer_registry,
            deliverable_repo=deliverable_repo,
            file_store=file_store,
            notifier=notifier,
            max_bytes=settings.DELIVERABLE_MAX_BYTES,
            allowed_extensions=settings.DELIVERABLE_ALLOWED_EXTENSIONS,
        ),
        admin=OrderAdminService(
            coordinator=coordinator,
            order_ledger=order_ledger,
            state_machine=state_machine,
            customer_registry=customer_registry,
            order_repo=order_repo,
            history_repo=history_repo,
            payment_repo=payment_repo,
            deliverable_repo=deliverable_repo,
            notifier=notifier,
        ),
        file_store=file_store,
        notifier=notifier,
        gateways=gateways,
    )
