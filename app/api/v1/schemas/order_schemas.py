"""
Modelos Pydantic para la API de pedidos, pagos y administración.

Las validaciones de negocio (tier activo, cantidad máxima, formato de
email) viven en los servicios; aquí solo se valida la forma del request.
"""

from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from app.domain.enums import OrderStatus, PaymentMethod
from app.services.orders.orchestrator import CartItem, CustomerDetails


class CustomerIn(BaseModel):
    """Datos del cliente que realiza el pedido."""

    name: str = Field(..., min_length=1, max_length=255)
    email: str = Field(..., min_length=3, max_length=255)
    website: str = Field(default="", max_length=500)
    phone: Optional[str] = Field(default=None, max_length=50)

    @field_validator("name", "email")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v

    def to_details(self) -> CustomerDetails:
        return CustomerDetails(name=self.name, email=self.email, website=self.website, phone=self.phone)


class CartItemIn(BaseModel):
    """Una línea del carrito: tier del catálogo, requisitos y cantidad."""

    tier_id: str = Field(..., min_length=1)
    requirements: str = Field(default="")
    quantity: int = Field(default=1)

    def to_item(self) -> CartItem:
        return CartItem(tier_id=self.tier_id, requirements=self.requirements, quantity=self.quantity)


class PlaceOrderRequest(BaseModel):
    """Pedido de un solo tier, con apertura opcional del pago."""

    customer: CustomerIn
    tier_id: str = Field(..., min_length=1)
    requirements: str = Field(default="")
    quantity: int = Field(default=1)
    payment_method: Optional[PaymentMethod] = None


class CartCheckoutRequest(BaseModel):
    """Carrito completo: un pedido por línea, todos o ninguno."""

    customer: CustomerIn
    items: List[CartItemIn] = Field(..., min_length=1)
    payment_method: Optional[PaymentMethod] = None


class InitiatePaymentRequest(BaseModel):
    payment_method: PaymentMethod


class CapturePaymentRequest(BaseModel):
    """Captura tras la aprobación del cliente en la pasarela."""

    payment_method: PaymentMethod
    gateway_order_id: str = Field(..., min_length=1)


class StatusUpdateRequest(BaseModel):
    status: OrderStatus
    note: Optional[str] = Field(default=None, max_length=2000)
