"""Billing period allocation of received payments.

Spreads a received amount over consecutive monthly billing periods against a
recurring due amount (the contract rent):
- Full periods receive exactly the due amount, in chronological order
- The final period receives whatever remains (partial unless it equals the due amount)
- Months roll over into the next year after December

The allocator is currency-agnostic: it compares like units only. Callers that
receive a payment in a currency other than the rent's convert the rent first
(see allocate_for_contract).
"""

import logging
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Optional

from rentledger.services.currency_service import CurrencyNormalizer, to_decimal
from rentledger.services.errors import NoRecurringAmountError, ValidationError

logger = logging.getLogger(__name__)

# Tolerance when comparing the remainder against the due amount
EPSILON = Decimal("0.000001")


class PeriodAllocation(NamedTuple):
    """Portion of a payment assigned to one billing period."""

    month: int
    year: int
    amount: Decimal
    currency: str
    is_full: bool
    source_reference: Optional[str] = None

    @property
    def billing_period(self) -> date:
        """First day of the allocated month (persisted as payment.billing_period)."""
        return date(self.year, self.month, 1)


def next_period(month: int, year: int) -> tuple[int, int]:
    """Return the (month, year) following the given one."""
    if month == 12:
        return 1, year + 1
    return month + 1, year


class BillingPeriodAllocator:
    """Greedy, deterministic allocation of payments over monthly periods."""

    def __init__(self, normalizer: Optional[CurrencyNormalizer] = None):
        """Initialize allocator.

        Args:
            normalizer: Currency normalizer used by allocate_for_contract
        """
        self.normalizer = normalizer or CurrencyNormalizer()

    def allocate(
        self,
        amount,
        currency: str,
        start_month: int,
        start_year: int,
        periodic_due_amount,
        source_reference: Optional[str] = None,
        first_period_due=None,
    ) -> list[PeriodAllocation]:
        """Allocate amount over consecutive periods starting at (start_month, start_year).

        Ensures: sum(allocation.amount) == amount (rounded to cents)

        Algorithm:
        1. remaining = amount
        2. While remaining > 0: emit a full period if remaining covers the due
           amount, otherwise emit the remainder as a partial period
        3. Advance one month after each emission

        The starting period may already be partly paid (e.g. by an earlier part
        of a split payment); first_period_due is then what is still owed for it.
        An allocation that settles that balance is marked full.

        Args:
            amount: Received amount (> 0) in `currency`
            currency: Currency of amount and periodic_due_amount
            start_month: First billing month (1-12)
            start_year: First billing year
            periodic_due_amount: Due amount per period (> 0) in `currency`
            source_reference: Echoed on every allocation for traceability
            first_period_due: Amount still owed for the starting period
                (0 < first_period_due <= periodic_due_amount); defaults to the full due

        Returns:
            Allocations in strict chronological order

        Raises:
            ValidationError: If amount or due amount is not positive, or month is out of range
        """
        total = to_decimal(amount, "amount")
        due = to_decimal(periodic_due_amount, "periodic_due_amount")

        if total <= 0:
            raise ValidationError(f"amount must be positive, got {total}")
        if due <= 0:
            raise ValidationError(f"periodic_due_amount must be positive, got {due}")

        if first_period_due is None:
            first_due = CurrencyNormalizer.quantize(due)
        else:
            first_due = CurrencyNormalizer.quantize(to_decimal(first_period_due, "first_period_due"))
            if first_due <= 0 or first_due > CurrencyNormalizer.quantize(due):
                raise ValidationError(
                    f"first_period_due must be positive and at most the due amount, got {first_due}"
                )
        if not isinstance(start_month, int) or not 1 <= start_month <= 12:
            raise ValidationError(f"start_month must be between 1 and 12, got {start_month!r}")
        if not isinstance(start_year, int):
            raise ValidationError(f"start_year must be an integer, got {start_year!r}")

        total = CurrencyNormalizer.quantize(total)
        due = CurrencyNormalizer.quantize(due)
        if total <= 0 or due <= 0:
            raise ValidationError("amounts below the currency minor unit cannot be allocated")

        code = currency.strip().upper() if currency else ""
        if not code:
            raise ValidationError("currency is required")

        allocations: list[PeriodAllocation] = []
        remaining = total
        month, year = start_month, start_year
        owed = first_due

        while remaining > 0:
            if remaining >= owed - EPSILON:
                allocations.append(
                    PeriodAllocation(month, year, owed, code, True, source_reference)
                )
                remaining -= owed
                owed = due
            else:
                allocations.append(
                    PeriodAllocation(month, year, remaining, code, False, source_reference)
                )
                remaining = Decimal("0.00")
            month, year = next_period(month, year)

        logger.debug(
            "Allocated %s %s from %02d/%d over %d period(s) (due=%s)",
            total,
            code,
            start_month,
            start_year,
            len(allocations),
            due,
        )
        return allocations

    def allocate_for_contract(
        self,
        amount,
        currency: str,
        exchange_rate,
        start_month: int,
        start_year: int,
        rent_amount,
        source_reference: Optional[str] = None,
        outstanding=None,
    ) -> list[PeriodAllocation]:
        """Allocate a payment part against a contract rent defined in canonical currency.

        The rent is first expressed in the payment's currency (e.g. how many VES
        one month of rent is at the payment's rate), then allocated.

        Args:
            outstanding: Canonical amount still owed for the starting month when
                it is already partly paid; None means the whole rent is owed

        Raises:
            NoRecurringAmountError: If rent_amount is missing or not positive
            MissingExchangeRateError: If the payment is non-canonical and has no positive rate
            ValidationError: On invalid amount, month or currency
        """
        if rent_amount is None or to_decimal(rent_amount, "rent_amount") <= 0:
            raise NoRecurringAmountError(
                "Contract has no positive rent amount; cannot allocate payment"
            )

        code = self.normalizer.check_currency(currency)
        due = self.normalizer.to_local(rent_amount, code, exchange_rate)
        first_due = None
        if outstanding is not None:
            first_due = self.normalizer.to_local(outstanding, code, exchange_rate)
        return self.allocate(
            amount, code, start_month, start_year, due, source_reference, first_due
        )


_default_allocator = BillingPeriodAllocator()


def allocate(
    amount,
    currency: str,
    start_month: int,
    start_year: int,
    periodic_due_amount,
    source_reference: Optional[str] = None,
    first_period_due=None,
) -> list[PeriodAllocation]:
    """Module-level shortcut for BillingPeriodAllocator().allocate."""
    return _default_allocator.allocate(
        amount, currency, start_month, start_year, periodic_due_amount, source_reference, first_period_due
    )
