"""Payment registration: preview allocations, then commit one row per billing period.

Flow:
1. Resolve the tenant's contract (active first, otherwise the latest one)
2. For every payment part, express the rent in the part's currency and
   allocate the part over consecutive months, starting where the previous
   part stopped (a partly paid month is topped up first)
3. Show the preview; on confirmation recompute it and persist one Payment
   per allocation. The allocator is deterministic, so the committed rows
   always match the preview the user confirmed.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from rentledger.models import Contract, ContractStatus, Payment, PaymentStatus
from rentledger.services.allocation_service import (
    BillingPeriodAllocator,
    PeriodAllocation,
    next_period,
)
from rentledger.services.config import EngineConfig, load_config
from rentledger.services.currency_service import CurrencyNormalizer, to_decimal
from rentledger.services.errors import (
    ContractNotFoundError,
    MissingExchangeRateError,
    NoRecurringAmountError,
    ValidationError,
)
from rentledger.services.parsers import month_label
from rentledger.services.records import ContractRecord, contract_from_row

logger = logging.getLogger(__name__)

INCOME_STATUSES = (PaymentStatus.APPROVED, PaymentStatus.PAID)


@dataclass(frozen=True)
class PaymentPart:
    """One transfer of a (possibly split) payment."""

    amount: Decimal
    currency: str = "USD"
    reference: str = ""
    exchange_rate: Optional[Decimal] = None  # falls back to the request rate


@dataclass(frozen=True)
class PaymentRequest:
    """A payment submission as entered by an administrator or tenant."""

    tenant_id: int
    start_month: int
    start_year: int
    parts: tuple[PaymentPart, ...]
    payment_date: date = field(default_factory=date.today)
    contract_id: Optional[int] = None
    exchange_rate: Optional[Decimal] = None
    payment_method: str = "Transferencia"
    notes: str = ""
    auto_approve: Optional[bool] = None  # None uses configuration


class PartPreview(NamedTuple):
    """Allocations computed for one payment part."""

    part: PaymentPart
    exchange_rate: Optional[Decimal]
    rent_in_currency: Decimal
    allocations: tuple[PeriodAllocation, ...]


class PaymentPreview(NamedTuple):
    """Everything the confirmation dialog shows before committing."""

    contract: ContractRecord
    parts: tuple[PartPreview, ...]

    @property
    def allocations(self) -> tuple[PeriodAllocation, ...]:
        return tuple(a for part in self.parts for a in part.allocations)


class MonthlyBalance(NamedTuple):
    """Rent coverage for one contract and billing period (canonical currency)."""

    rent_amount: Decimal
    paid_amount: Decimal
    pending_payments: Decimal
    total_covered: Decimal
    remaining_debt: Decimal
    is_partial: bool
    is_complete: bool
    unconverted_payments: int


class PaymentRegistrationService:
    """Preview and commit payments against a tenant's contract."""

    def __init__(
        self,
        db: Session,
        config: Optional[EngineConfig] = None,
        allocator: Optional[BillingPeriodAllocator] = None,
    ):
        """Initialize payment registration service.

        Args:
            db: SQLAlchemy database session
            config: Engine configuration (loaded from environment if omitted)
            allocator: Billing period allocator (built from config if omitted)
        """
        self.db = db
        self.config = config or load_config()
        self.normalizer = CurrencyNormalizer.from_config(self.config)
        self.allocator = allocator or BillingPeriodAllocator(self.normalizer)

    def find_active_contract(self, tenant_id: int) -> Contract:
        """Return the tenant's active contract, or the most recent one.

        Raises:
            ContractNotFoundError: If the tenant has no contract at all
        """
        stmt = (
            select(Contract)
            .options(joinedload(Contract.unit))
            .filter(Contract.tenant_id == tenant_id)
            .order_by(Contract.start_date.desc(), Contract.id.desc())
        )
        contracts = self.db.execute(stmt).unique().scalars().all()
        if not contracts:
            raise ContractNotFoundError(f"Tenant {tenant_id} has no registered contract")

        for contract in contracts:
            if contract.status == ContractStatus.ACTIVE:
                return contract
        return contracts[0]

    def get_contract(self, contract_id: int) -> Contract:
        """Fetch a contract by id.

        Raises:
            ContractNotFoundError: If no contract has that id
        """
        stmt = select(Contract).options(joinedload(Contract.unit)).filter(Contract.id == contract_id)
        contract = self.db.execute(stmt).unique().scalar_one_or_none()
        if contract is None:
            raise ContractNotFoundError(f"Contract {contract_id} not found")
        return contract

    def _resolve_contract(self, request: PaymentRequest) -> Contract:
        if request.contract_id is not None:
            contract = self.get_contract(request.contract_id)
            if contract.tenant_id != request.tenant_id:
                raise ValidationError(
                    f"Contract {contract.id} does not belong to tenant {request.tenant_id}"
                )
            return contract
        return self.find_active_contract(request.tenant_id)

    def validate_request(self, request: PaymentRequest) -> None:
        """Check the request shape before any allocation runs.

        Raises:
            ValidationError: On an empty request or a local-currency part without reference
        """
        if not request.parts:
            raise ValidationError("At least one payment part is required")

        for index, part in enumerate(request.parts, start=1):
            currency = self.normalizer.check_currency(part.currency)
            if currency != self.normalizer.canonical_currency and not part.reference.strip():
                raise ValidationError(
                    f"Part {index}: a reference number is required for {currency} payments"
                )

    def preview(self, request: PaymentRequest) -> PaymentPreview:
        """Compute the allocations of every part without touching the database.

        Raises:
            ContractNotFoundError: If no contract can be resolved
            NoRecurringAmountError: If the contract has no positive rent
            MissingExchangeRateError: If a local-currency part has no positive rate
            ValidationError: On invalid amounts, months or missing references
        """
        self.validate_request(request)
        contract = contract_from_row(self._resolve_contract(request))

        if contract.rent_amount is None or contract.rent_amount <= 0:
            raise NoRecurringAmountError(
                f"Contract {contract.id} has no rent amount; register the rent before payments"
            )

        rent = self.normalizer.quantize(contract.rent_amount)
        # Parts are applied in order: each one continues where the previous
        # left off, topping up a partly paid month before moving on.
        month, year = request.start_month, request.start_year
        covered = Decimal("0.00")

        previews: list[PartPreview] = []
        for part in request.parts:
            currency = self.normalizer.check_currency(part.currency)
            rate = part.exchange_rate if part.exchange_rate is not None else request.exchange_rate
            if currency != self.normalizer.canonical_currency and (rate is None or to_decimal(rate) <= 0):
                raise MissingExchangeRateError(
                    currency,
                    f"Enter an exchange rate before registering this {currency} payment",
                )

            rent_local = self.normalizer.quantize(
                self.normalizer.to_local(contract.rent_amount, currency, rate)
            )
            allocations = self.allocator.allocate_for_contract(
                part.amount,
                currency,
                rate,
                month,
                year,
                contract.rent_amount,
                source_reference=part.reference or currency,
                outstanding=rent - covered if covered > 0 else None,
            )

            last = allocations[-1]
            if last.is_full:
                month, year = next_period(last.month, last.year)
                covered = Decimal("0.00")
            else:
                paid = self.normalizer.quantize(
                    self.normalizer.to_canonical(last.amount, currency, rate)
                )
                month, year = last.month, last.year
                covered = (covered if len(allocations) == 1 else Decimal("0.00")) + paid
                if covered >= rent:
                    # Rounding to cents settled the month
                    month, year = next_period(month, year)
                    covered = Decimal("0.00")
            previews.append(
                PartPreview(
                    part=part,
                    exchange_rate=to_decimal(rate, "exchange_rate") if rate is not None else None,
                    rent_in_currency=rent_local,
                    allocations=tuple(allocations),
                )
            )

        return PaymentPreview(contract=contract, parts=tuple(previews))

    def commit(self, request: PaymentRequest) -> list[Payment]:
        """Persist one Payment per allocation of the (recomputed) preview.

        All rows are written in a single transaction; nothing is stored when
        any part fails.

        Returns:
            Created Payment rows in allocation order
        """
        preview = self.preview(request)
        approve = (
            request.auto_approve
            if request.auto_approve is not None
            else self.config.auto_approve_payments
        )
        status = PaymentStatus.APPROVED if approve else PaymentStatus.PENDING
        split = len(preview.parts) > 1

        payments: list[Payment] = []
        try:
            for part_preview in preview.parts:
                for allocation in part_preview.allocations:
                    concept = f"Canon {month_label(allocation.month)} {allocation.year}"
                    if split:
                        concept += " (Parte)"
                    payment = Payment(
                        tenant_id=request.tenant_id,
                        contract_id=preview.contract.id,
                        date=request.payment_date,
                        amount=allocation.amount,
                        currency=allocation.currency,
                        exchange_rate=part_preview.exchange_rate,
                        billing_period=allocation.billing_period,
                        status=status,
                        reference_number=part_preview.part.reference or None,
                        concept=concept,
                        payment_method=request.payment_method,
                        notes=request.notes or None,
                    )
                    self.db.add(payment)
                    payments.append(payment)
            self.db.commit()
        except Exception:
            self.db.rollback()
            logger.error(
                "Failed to commit payment for tenant %s; rolled back", request.tenant_id
            )
            raise

        for payment in payments:
            self.db.refresh(payment)

        logger.info(
            "Registered %d payment row(s) for tenant %s on contract %s (status=%s)",
            len(payments),
            request.tenant_id,
            preview.contract.id,
            status.value,
        )
        return payments

    def monthly_balance(self, contract_id: int, month: int, year: int) -> MonthlyBalance:
        """Compute how much of one month's rent is covered.

        Approved/paid payments count as paid; pending ones are shown separately.
        Payments that cannot be converted (no rate, or a currency outside the
        supported set) are counted in unconverted_payments instead of being
        valued at zero.

        Raises:
            ContractNotFoundError: If the contract does not exist
            ValidationError: If month is out of range
        """
        if not 1 <= month <= 12:
            raise ValidationError(f"month must be between 1 and 12, got {month}")

        contract = self.get_contract(contract_id)
        rent = self.normalizer.quantize(contract.rent_amount or 0)

        stmt = select(Payment).filter(
            Payment.contract_id == contract_id,
            Payment.billing_period == date(year, month, 1),
        )
        rows = self.db.execute(stmt).scalars().all()

        paid = Decimal("0.00")
        pending = Decimal("0.00")
        unconverted = 0
        for row in rows:
            if row.status == PaymentStatus.REJECTED:
                continue
            try:
                amount = self.normalizer.quantize(
                    self.normalizer.to_canonical(row.amount, row.currency, row.exchange_rate)
                )
            except (MissingExchangeRateError, ValidationError) as e:
                unconverted += 1
                logger.warning("Payment %s excluded from balance: %s", row.id, e.message)
                continue
            if row.status in INCOME_STATUSES:
                paid += amount
            else:
                pending += amount

        covered = paid + pending
        remaining = max(rent - covered, Decimal("0.00"))
        return MonthlyBalance(
            rent_amount=rent,
            paid_amount=paid,
            pending_payments=pending,
            total_covered=covered,
            remaining_debt=remaining,
            is_partial=Decimal("0") < paid < rent,
            is_complete=remaining <= Decimal("0.01"),
            unconverted_payments=unconverted,
        )


__all__ = [
    "MonthlyBalance",
    "PartPreview",
    "PaymentPart",
    "PaymentPreview",
    "PaymentRegistrationService",
    "PaymentRequest",
]
