"""Dobles de prueba y utilidades compartidas por los tests de integración."""

import asyncio
from decimal import Decimal
from typing import Mapping, Optional

import sqlalchemy as sa
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine

from app.db.connection import Database
from app.db.schema import service_tiers, services
from app.domain.enums import PaymentMethod
from app.domain.value_objects import Money
from app.services.orders.orchestrator import CustomerDetails
from app.services.payments.gateways.base import PaymentGatewayClient
from app.services.payments.results import CaptureResult, CaptureSucceeded, PaymentInitiation, RefundResult

PRO_TIER = "seo-audit-pro"
BASIC_TIER = "seo-audit-basic"
RETIRED_TIER = "seo-audit-legacy"
ORPHAN_TIER = "link-building-starter"

PRO_PRICE = Decimal("450.00")


def sqlite_immediate_transactions(engine: AsyncEngine) -> None:
    """
    SQLite no soporta SELECT ... FOR UPDATE; BEGIN IMMEDIATE toma el lock
    de escritura al abrir la transacción y serializa las unidades de trabajo.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class FakeGateway(PaymentGatewayClient):
    """Pasarela en memoria con resultados configurables."""

    name = "paypal"
    method = PaymentMethod.PAYPAL

    def __init__(self, timeout: float = 1.0):
        super().__init__(timeout=timeout)
        self.capture_result: Optional[CaptureResult] = None
        self.capture_delay = 0.0
        self.signature_valid = True
        self.initiated = []
        self.captured = []
        self.refunded = []

    async def authenticate(self) -> str:
        return "fake-token"

    async def initiate_payment(self, amount: Money, reference: str, description: str) -> PaymentInitiation:
        self.initiated.append((reference, amount))
        return PaymentInitiation(
            method=self.method, gateway_order_id=f"GW-{reference}", approval_handle=f"https://pay.example/{reference}"
        )

    async def capture_payment(self, gateway_order_id: str) -> CaptureResult:
        self.captured.append(gateway_order_id)
        if self.capture_delay:
            return await self._bounded(asyncio.sleep(self.capture_delay, result=self.capture_result), "capture")
        return self.capture_result

    async def refund_payment(self, gateway_reference: str, amount: Optional[Money] = None) -> RefundResult:
        self.refunded.append(gateway_reference)
        return RefundResult(gateway_reference=gateway_reference, refund_id=f"REF-{gateway_reference}", status="COMPLETED")

    async def verify_webhook_signature(
        self, headers: Mapping[str, str], raw_body: bytes, secret: Optional[str] = None
    ) -> bool:
        return self.signature_valid


def succeeded(reference: str = "CAP-1", amount: str = "450.00", currency: str = "USD") -> CaptureSucceeded:
    return CaptureSucceeded(gateway_reference=reference, amount=Money(Decimal(amount), currency), payer_id="PAYER-1")


def customer_details(email: str = "ana@example.com", name: str = "Ana Mora") -> CustomerDetails:
    return CustomerDetails(name=name, email=email, website="https://ana.example.com")


async def seed_catalog(database: Database) -> None:
    async with database.engine.begin() as conn:
        await conn.execute(
            sa.insert(services),
            [
                {"id": 1, "name": "SEO Audit", "description": "Technical SEO audit", "is_active": True},
                {"id": 2, "name": "Link Building", "description": "Retired service", "is_active": False},
            ],
        )
        await conn.execute(
            sa.insert(service_tiers),
            [
                {"id": PRO_TIER, "service_id": 1, "name": "Pro", "price": PRO_PRICE, "delivery_days": 7, "is_active": True},
                {"id": BASIC_TIER, "service_id": 1, "name": "Basic", "price": Decimal("150.00"), "delivery_days": 3, "is_active": True},
                {"id": RETIRED_TIER, "service_id": 1, "name": "Legacy", "price": Decimal("99.00"), "delivery_days": 5, "is_active": False},
                {"id": ORPHAN_TIER, "service_id": 2, "name": "Starter", "price": Decimal("200.00"), "delivery_days": 10, "is_active": True},
            ],
        )


async def count_rows(database: Database, table: sa.Table, **filters) -> int:
    statement = sa.select(sa.func.count()).select_from(table)
    for column, value in filters.items():
        statement = statement.where(table.c[column] == value)
    async with database.engine.connect() as conn:
        return (await conn.execute(statement)).scalar_one()


def make_database(path, pool_size: int = 5, pool_timeout: float = 5.0) -> Database:
    return Database(
        url=f"sqlite+aiosqlite:///{path}",
        pool_size=pool_size,
        max_overflow=0,
        pool_timeout=pool_timeout,
        connect_args={"timeout": 30},
        engine_hooks=[sqlite_immediate_transactions],
    )
