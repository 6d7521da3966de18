"""Manager services for business operations."""

from .order_ledger import OrderLedger
from .status_state_machine import StatusStateMachine

__all__ = ["OrderLedger", "StatusStateMachine"]
