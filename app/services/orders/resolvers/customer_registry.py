"""CustomerRegistry service - SRP compliance."""

import logging

from sqlalchemy.exc import IntegrityError

from app.db.repositories import CustomerRepository
from app.db.transaction import UnitOfWork
from app.domain.models import CustomerDomain
from app.utils.error_handler import CustomerInUseException, CustomerNotFoundException, ValidationException

logger = logging.getLogger(__name__)


class CustomerRegistry:
    """Resolves or creates customers keyed by email (SRP: Customer identity only)."""

    def __init__(self, customer_repo: CustomerRepository):
        """
        Initialize with SOLID dependencies (DIP).

        Args:
            customer_repo: Repository for customer operations
        """
        self.customer_repo = customer_repo

    async def upsert_customer(
        self, uow: UnitOfWork, name: str, email: str, website: str, phone: str | None = None
    ) -> int:
        """
        Resolve a customer by normalized email, creating or updating it.

        An existing customer gets its name and website refreshed; its phone
        is kept unless a new one is supplied. Runs inside the caller's unit
        of work so a later failure rolls the mutation back.

        Returns:
            int: Customer ID

        Raises:
            ValidationException: If name or email are invalid
        """
        customer = self._build(name, email, website, phone)

        existing = await self.customer_repo.find_by_email(uow.session, customer.email, for_update=True)
        if existing:
            await self._refresh(uow, existing["id"], customer)
            return existing["id"]

        try:
            async with uow.savepoint():
                return await self.customer_repo.insert(
                    uow.session, customer.name, customer.email, customer.website, customer.phone
                )
        except IntegrityError:
            # Concurrent first order with the same email
            existing = await self.customer_repo.find_by_email(uow.session, customer.email, for_update=True)
            if not existing:
                raise
            logger.info(f"Customer {customer.email} was created concurrently, reusing id={existing['id']}")
            await self._refresh(uow, existing["id"], customer)
            return existing["id"]

    async def get_customer(self, uow: UnitOfWork, customer_id: int) -> CustomerDomain:
        row = await self.customer_repo.find_by_id(uow.session, customer_id)
        if row is None:
            raise CustomerNotFoundException(customer_id)
        return CustomerDomain.from_dict(row)

    async def delete_customer(self, uow: UnitOfWork, customer_id: int) -> None:
        """
        Delete a customer that no order references.

        Raises:
            CustomerNotFoundException: If the customer does not exist
            CustomerInUseException: If any order still references the customer
        """
        row = await self.customer_repo.find_by_id(uow.session, customer_id, for_update=True)
        if row is None:
            raise CustomerNotFoundException(customer_id)

        order_count = await self.customer_repo.count_orders(uow.session, customer_id)
        if order_count:
            raise CustomerInUseException(customer_id, order_count)

        await self.customer_repo.delete(uow.session, customer_id)
        logger.info(f"Customer {customer_id} deleted")

    @staticmethod
    def _build(name: str, email: str, website: str, phone: str | None) -> CustomerDomain:
        try:
            return CustomerDomain(name=name, email=email, website=website, phone=phone)
        except ValueError as e:
            field = "email" if "email" in str(e).lower() else "name"
            raise ValidationException(message=str(e), field=field, invalid_value=email if field == "email" else name) from e

    async def _refresh(self, uow: UnitOfWork, customer_id: int, customer: CustomerDomain) -> None:
        await self.customer_repo.update_profile(
            uow.session, customer_id, name=customer.name, website=customer.website, phone=customer.phone
        )
        logger.debug(f"Refreshed customer {customer_id} profile")
