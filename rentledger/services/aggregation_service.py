"""Revenue aggregation and owner distribution.

Unified formula per property (canonical currency):
    net = sum(payment canonical amounts) - sum(expense amounts)

Each owner receives net * percentage / 100 of every property they hold a share
in, accumulated across the report scope. Amounts are kept to the cent: the
distributable part of a property's net is split with the largest-share-first
remainder rule so that owner shares always add up exactly.

Reconciliation (always holds):
    distributed_total + undistributed_total + unassigned_total == total_net

- unassigned: net of properties without any ownership entry
- undistributed: part of an owned property's net not covered because its
  percentages add up to less than 100 (negative when they exceed 100)
"""

import logging
import warnings
from dataclasses import dataclass, field
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping, NamedTuple, Optional

from rentledger.services.currency_service import CENT, CurrencyNormalizer
from rentledger.services.errors import (
    MissingExchangeRateError,
    UnassignedOwnershipWarning,
    ValidationError,
)
from rentledger.services.records import (
    ExpenseRecord,
    OwnershipMap,
    PaymentRecord,
    SkippedRecord,
)
from rentledger.services.report_filter import ReportFilterEngine, ScopeFilter

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")
HUNDRED = Decimal("100")


class LedgerEntry(NamedTuple):
    """One payment line in its original currency.

    rate is None for canonical-currency entries. canonical_amount is None when
    a non-canonical payment had no usable exchange rate.
    """

    date: date
    tenant_name: str
    concept: str
    credit: Decimal
    currency: str
    rate: Optional[Decimal]
    canonical_amount: Optional[Decimal]
    payment_id: Optional[int] = None
    property_id: Optional[int] = None


class PropertyNet(NamedTuple):
    """Income, expense and net of one property in canonical currency."""

    property_id: int
    property_name: str
    income: Decimal
    expense: Decimal
    net: Decimal
    has_owners: bool


class OwnerShare(NamedTuple):
    """An owner's accumulated share of net income across the scope."""

    owner_id: int
    owner_name: str
    amount: Decimal
    percentage_of_total: Decimal
    property_count: int


class UnassignedNet(NamedTuple):
    """Net income of a property with no registered owners."""

    property_id: int
    property_name: str
    net: Decimal


@dataclass(frozen=True)
class AggregationResult:
    """Computed report for one scope. A new value is built on every call."""

    ledger_by_currency: dict[str, tuple[LedgerEntry, ...]]
    per_property: tuple[PropertyNet, ...]
    per_owner: tuple[OwnerShare, ...]
    unassigned: tuple[UnassignedNet, ...]
    expense_distribution: dict[str, Decimal]
    skipped: tuple[SkippedRecord, ...] = ()
    undistributed_total: Decimal = ZERO
    excluded_owner_total: Decimal = ZERO
    canonical_currency: str = "USD"
    notes: tuple[str, ...] = field(default=())

    @property
    def skipped_records(self) -> int:
        return len(self.skipped)

    @property
    def total_income(self) -> Decimal:
        return sum((p.income for p in self.per_property), ZERO)

    @property
    def total_expense(self) -> Decimal:
        return sum((p.expense for p in self.per_property), ZERO)

    @property
    def total_net(self) -> Decimal:
        return sum((p.net for p in self.per_property), ZERO)

    @property
    def unassigned_total(self) -> Decimal:
        return sum((u.net for u in self.unassigned), ZERO)

    @property
    def distributed_total(self) -> Decimal:
        """Shares paid out to every owner, including owners outside an owner filter."""
        return sum((o.amount for o in self.per_owner), ZERO) + self.excluded_owner_total


def distribute_with_remainder(total: Decimal, shares: Mapping[int, Decimal]) -> dict[int, Decimal]:
    """Split total by share weights to the cent, with no money lost or created.

    Ensures: sum(result) == total (total must already be rounded to cents)

    Algorithm:
    1. Per-unit allocation: total / sum(shares)
    2. amount_per_owner = per_unit * weight, rounded half up to cents
    3. The remaining cents (positive or negative) go one by one to the
       largest share holders; ties resolved by owner id

    Args:
        total: Amount to split, in cents precision (may be negative)
        shares: Mapping of owner_id to share weight

    Returns:
        Mapping of owner_id to allocated amount
    """
    if not shares:
        return {}

    total_shares = sum(shares.values(), Decimal(0))
    if total_shares == 0:
        return {owner_id: ZERO for owner_id in shares}

    per_unit = total / total_shares
    allocations = {
        owner_id: (per_unit * weight).quantize(CENT, rounding=ROUND_HALF_UP)
        for owner_id, weight in shares.items()
    }

    remainder_cents = int(((total - sum(allocations.values(), ZERO)) / CENT).to_integral_value())
    if remainder_cents:
        step = CENT if remainder_cents > 0 else -CENT
        ordered = sorted(shares.items(), key=lambda item: (-item[1], item[0]))
        for i in range(abs(remainder_cents)):
            owner_id = ordered[i % len(ordered)][0]
            allocations[owner_id] += step

    return allocations


class RevenueAggregator:
    """Build per-currency ledgers, per-property nets and owner distributions."""

    def __init__(
        self,
        normalizer: Optional[CurrencyNormalizer] = None,
        filter_engine: Optional[ReportFilterEngine] = None,
    ):
        """Initialize aggregator.

        Args:
            normalizer: Currency normalizer (default: USD canonical, USD/VES supported)
            filter_engine: Scope filter used for defensive re-filtering
        """
        self.normalizer = normalizer or CurrencyNormalizer()
        self.filter_engine = filter_engine or ReportFilterEngine()

    def aggregate(
        self,
        payments: Iterable[PaymentRecord],
        expenses: Iterable[ExpenseRecord],
        ownership_map: OwnershipMap,
        scope: ScopeFilter,
        property_names: Optional[Mapping[int, str]] = None,
        skipped: Iterable[SkippedRecord] = (),
    ) -> AggregationResult:
        """Aggregate payments and expenses in scope and distribute net income to owners.

        Args:
            payments: Payments already limited to income statuses by the caller
            expenses: Expenses already limited to counted statuses by the caller
            ownership_map: property_id -> ownership entries
            scope: Report scope; re-applied here even if inputs were pre-filtered
            property_names: Optional display names for properties
            skipped: Records already excluded upstream (e.g. during ingestion)

        Returns:
            AggregationResult with ledgers, per-property nets and per-owner shares
        """
        canonical = self.normalizer.canonical_currency
        allowed = self.filter_engine.resolve_property_ids(scope, ownership_map)
        names: dict[int, str] = dict(property_names or {})
        skipped_records = list(skipped)
        notes: list[str] = []

        ledger: dict[str, list[LedgerEntry]] = {canonical: []}
        income: dict[int, Decimal] = {}
        expense: dict[int, Decimal] = {}

        # 1. Ledger assembly and per-property income
        for payment in payments:
            if not self.filter_engine.matches(payment, scope, allowed):
                continue

            rate = None if self._is_canonical(payment.currency) else payment.exchange_rate
            canonical_amount: Optional[Decimal] = None
            reason: Optional[str] = None
            try:
                canonical_amount = self.normalizer.quantize(
                    self.normalizer.to_canonical(
                        payment.amount, payment.currency, payment.exchange_rate
                    )
                )
            except MissingExchangeRateError as e:
                reason = e.message
            except ValidationError as e:
                reason = e.message

            ledger.setdefault(payment.currency, []).append(
                LedgerEntry(
                    date=payment.date,
                    tenant_name=payment.tenant_name,
                    concept=payment.concept,
                    credit=payment.amount,
                    currency=payment.currency,
                    rate=rate,
                    canonical_amount=canonical_amount,
                    payment_id=payment.id,
                    property_id=payment.property_id,
                )
            )

            if reason is None and payment.property_id is None:
                reason = "Payment cannot be resolved to a property"
            if reason is not None:
                logger.warning("Excluding payment %s from totals: %s", payment.id, reason)
                skipped_records.append(SkippedRecord("payment", payment.id, reason))
                continue

            income[payment.property_id] = income.get(payment.property_id, ZERO) + canonical_amount
            if payment.property_name:
                names.setdefault(payment.property_id, payment.property_name)

        # 2. Per-property expenses and category distribution
        distribution: dict[str, Decimal] = {}
        for item in expenses:
            if not self.filter_engine.matches(item, scope, allowed):
                continue
            amount = self.normalizer.quantize(item.amount)
            expense[item.property_id] = expense.get(item.property_id, ZERO) + amount
            category = item.category or "other"
            distribution[category] = distribution.get(category, ZERO) + amount

        per_property: list[PropertyNet] = []
        for property_id in sorted(set(income) | set(expense)):
            entries = ownership_map.get(property_id, ())
            prop_income = income.get(property_id, ZERO)
            prop_expense = expense.get(property_id, ZERO)
            per_property.append(
                PropertyNet(
                    property_id=property_id,
                    property_name=names.get(property_id, ""),
                    income=prop_income,
                    expense=prop_expense,
                    net=prop_income - prop_expense,
                    has_owners=bool(entries),
                )
            )

        # 3. Owner distribution
        owner_totals: dict[int, Decimal] = {}
        owner_names: dict[int, str] = {}
        owner_properties: dict[int, set[int]] = {}
        unassigned: list[UnassignedNet] = []
        undistributed = ZERO

        for prop in per_property:
            entries = ownership_map.get(prop.property_id, ())
            if not entries:
                message = (
                    f"Property {prop.property_id} ({prop.property_name or 'unnamed'}) has net "
                    f"{prop.net} {canonical} but no registered owners"
                )
                logger.warning(message)
                warnings.warn(message, UnassignedOwnershipWarning, stacklevel=2)
                notes.append(message)
                unassigned.append(UnassignedNet(prop.property_id, prop.property_name, prop.net))
                continue

            weights: dict[int, Decimal] = {}
            for entry in entries:
                weights[entry.owner_id] = weights.get(entry.owner_id, Decimal(0)) + entry.percentage
                owner_names.setdefault(entry.owner_id, entry.owner_name)
                owner_properties.setdefault(entry.owner_id, set()).add(prop.property_id)

            covered = sum(weights.values(), Decimal(0))
            distributable = (prop.net * covered / HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)
            undistributed += prop.net - distributable
            if covered != HUNDRED:
                note = (
                    f"Ownership of property {prop.property_id} adds up to {covered}%; "
                    f"distributed {distributable} of net {prop.net}"
                )
                logger.info(note)
                notes.append(note)

            for owner_id, share in distribute_with_remainder(distributable, weights).items():
                owner_totals[owner_id] = owner_totals.get(owner_id, ZERO) + share

        # 4. Owner filter and percentage of total
        excluded = ZERO
        if scope.owner_ids:
            for owner_id in list(owner_totals):
                if owner_id not in scope.owner_ids:
                    excluded += owner_totals.pop(owner_id)

        reported_total = sum(owner_totals.values(), ZERO)
        per_owner = tuple(
            OwnerShare(
                owner_id=owner_id,
                owner_name=owner_names.get(owner_id, ""),
                amount=amount,
                percentage_of_total=self._percentage(amount, reported_total),
                property_count=len(owner_properties.get(owner_id, ())),
            )
            for owner_id, amount in sorted(owner_totals.items())
        )

        ledger_by_currency = {
            currency: tuple(sorted(entries, key=lambda e: (e.date, e.payment_id or 0)))
            for currency, entries in ledger.items()
        }

        result = AggregationResult(
            ledger_by_currency=ledger_by_currency,
            per_property=tuple(per_property),
            per_owner=per_owner,
            unassigned=tuple(unassigned),
            expense_distribution=dict(sorted(distribution.items())),
            skipped=tuple(skipped_records),
            undistributed_total=undistributed,
            excluded_owner_total=excluded,
            canonical_currency=canonical,
            notes=tuple(notes),
        )
        logger.info(
            "Aggregated %d propert(ies), %d owner(s): net=%s distributed=%s unassigned=%s skipped=%d",
            len(result.per_property),
            len(result.per_owner),
            result.total_net,
            result.distributed_total,
            result.unassigned_total,
            result.skipped_records,
        )
        return result

    def _is_canonical(self, currency: str) -> bool:
        return currency.upper() == self.normalizer.canonical_currency

    @staticmethod
    def _percentage(amount: Decimal, total: Decimal) -> Decimal:
        if total == 0:
            return ZERO
        return (amount / total * HUNDRED).quantize(CENT, rounding=ROUND_HALF_UP)


def aggregate(
    payments: Iterable[PaymentRecord],
    expenses: Iterable[ExpenseRecord],
    ownership_map: OwnershipMap,
    scope: ScopeFilter,
) -> AggregationResult:
    """Module-level shortcut for RevenueAggregator().aggregate."""
    return RevenueAggregator().aggregate(payments, expenses, ownership_map, scope)
