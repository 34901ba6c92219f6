"""Report generation: fetch scoped rows, narrow them, aggregate.

The database is the only I/O; it happens before the pure engine runs.
Only approved/paid payments count as income, and only paid expenses are
charged to properties.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import NamedTuple, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from rentledger.models import (
    Contract,
    Expense,
    ExpenseStatus,
    Payment,
    PaymentStatus,
    Property,
    PropertyOwner,
    Tenant,
    Unit,
)
from rentledger.services.aggregation_service import (
    AggregationResult,
    OwnerShare,
    RevenueAggregator,
    UnassignedNet,
)
from rentledger.services.config import EngineConfig, load_config
from rentledger.services.currency_service import CurrencyNormalizer
from rentledger.services.errors import MissingExchangeRateError, ValidationError
from rentledger.services.records import (
    OwnershipMap,
    PaymentRecord,
    SkippedRecord,
    ingest_expenses,
    ingest_payments,
    ownership_map_from_rows,
)
from rentledger.services.report_filter import ReportFilterEngine, ScopeFilter

logger = logging.getLogger(__name__)

INCOME_STATUSES = (PaymentStatus.APPROVED, PaymentStatus.PAID)


class OwnerReport(NamedTuple):
    """Owner distribution view of an aggregation."""

    shares: tuple[OwnerShare, ...]
    unassigned: tuple[UnassignedNet, ...]
    distributed_total: Decimal
    unassigned_total: Decimal
    skipped_records: int


class StatementLine(NamedTuple):
    """One payment on a tenant statement."""

    date: date
    concept: str
    property_name: str
    unit_name: str
    amount: Optional[Decimal]  # canonical; None when it could not be converted
    amount_original: Decimal
    currency: str
    exchange_rate: Optional[Decimal]
    billing_period: Optional[date]
    reference: str
    method: str
    status: str


class TenantStatement(NamedTuple):
    """Approved payments of a tenant over a date range."""

    tenant_id: int
    tenant_name: str
    start_date: date
    end_date: date
    lines: tuple[StatementLine, ...]
    total_paid: Decimal
    skipped: tuple[SkippedRecord, ...]


class ReportService:
    """Build income/expense, owner and tenant reports from the database."""

    def __init__(self, db: Session, config: Optional[EngineConfig] = None):
        """Initialize with database session.

        Args:
            db: SQLAlchemy session for read queries
            config: Engine configuration (loaded from environment if omitted)
        """
        self.db = db
        self.config = config or load_config()
        self.normalizer = CurrencyNormalizer.from_config(self.config)
        self.filter_engine = ReportFilterEngine()
        self.aggregator = RevenueAggregator(self.normalizer, self.filter_engine)

    def _payment_query(self):
        return select(Payment).options(
            joinedload(Payment.tenant),
            joinedload(Payment.contract).joinedload(Contract.unit).joinedload(Unit.property),
        )

    def fetch_payments(self, start: date, end: date) -> tuple[list[PaymentRecord], list[SkippedRecord]]:
        """Income payments dated within [start, end], as typed records."""
        stmt = self._payment_query().filter(
            Payment.status.in_(INCOME_STATUSES),
            Payment.date >= start,
            Payment.date <= end,
        )
        rows = self.db.execute(stmt).unique().scalars().all()
        return ingest_payments(rows)

    def fetch_expenses(self, start: date, end: date):
        """Paid expenses dated within [start, end], as typed records."""
        stmt = select(Expense).filter(
            Expense.status == ExpenseStatus.PAID,
            Expense.date >= start,
            Expense.date <= end,
        )
        return ingest_expenses(self.db.execute(stmt).scalars().all())

    def fetch_ownership_map(self) -> OwnershipMap:
        stmt = select(PropertyOwner).options(joinedload(PropertyOwner.owner))
        return ownership_map_from_rows(self.db.execute(stmt).scalars().all())

    def fetch_property_names(self) -> dict[int, str]:
        rows = self.db.execute(select(Property.id, Property.name)).all()
        return {row.id: row.name for row in rows}

    def income_expense_report(self, scope: ScopeFilter) -> AggregationResult:
        """Ledgers, per-property nets and owner distribution for a scope."""
        start, end = scope.date_range()
        ownership_map = self.fetch_ownership_map()

        payments, skipped_payments = self.fetch_payments(start, end)
        expenses, skipped_expenses = self.fetch_expenses(start, end)

        payments = self.filter_engine.narrow(payments, scope, ownership_map)
        expenses = self.filter_engine.narrow(expenses, scope, ownership_map)

        logger.info(
            "Building report year=%d months=%s: %d payment(s), %d expense(s)",
            scope.year,
            list(scope.selected_months),
            len(payments),
            len(expenses),
        )
        return self.aggregator.aggregate(
            payments,
            expenses,
            ownership_map,
            scope,
            property_names=self.fetch_property_names(),
            skipped=skipped_payments + skipped_expenses,
        )

    def owner_report(self, scope: ScopeFilter) -> OwnerReport:
        """Per-owner shares of net income for a scope."""
        result = self.income_expense_report(scope)
        return OwnerReport(
            shares=result.per_owner,
            unassigned=result.unassigned,
            distributed_total=result.distributed_total,
            unassigned_total=result.unassigned_total,
            skipped_records=result.skipped_records,
        )

    def tenant_statement(self, tenant_id: int, start: date, end: date) -> TenantStatement:
        """Approved/paid payments of one tenant, normalized to canonical currency.

        Raises:
            ValidationError: If the range is inverted or the tenant does not exist
        """
        if start > end:
            raise ValidationError(f"start date {start} is after end date {end}")

        tenant = self.db.get(Tenant, tenant_id)
        if tenant is None:
            raise ValidationError(f"Tenant {tenant_id} not found")

        stmt = (
            self._payment_query()
            .filter(
                Payment.tenant_id == tenant_id,
                Payment.status.in_(INCOME_STATUSES),
                Payment.date >= start,
                Payment.date <= end,
            )
            .order_by(Payment.date.asc(), Payment.id.asc())
        )
        records, skipped = ingest_payments(self.db.execute(stmt).unique().scalars().all())

        lines: list[StatementLine] = []
        total = Decimal("0.00")
        for record in records:
            try:
                amount = self.normalizer.quantize(
                    self.normalizer.to_canonical(record.amount, record.currency, record.exchange_rate)
                )
                total += amount
            except (MissingExchangeRateError, ValidationError) as e:
                amount = None
                logger.warning("Payment %s excluded from statement total: %s", record.id, e.message)
                skipped.append(SkippedRecord("payment", record.id, e.message))

            lines.append(
                StatementLine(
                    date=record.date,
                    concept=record.concept or "Pago de alquiler",
                    property_name=record.property_name,
                    unit_name=record.unit_name,
                    amount=amount,
                    amount_original=record.amount,
                    currency=record.currency,
                    exchange_rate=record.exchange_rate,
                    billing_period=record.billing_period,
                    reference=record.reference or "-",
                    method=record.payment_method or "-",
                    status=record.status,
                )
            )

        return TenantStatement(
            tenant_id=tenant.id,
            tenant_name=tenant.name,
            start_date=start,
            end_date=end,
            lines=tuple(lines),
            total_paid=total,
            skipped=tuple(skipped),
        )


__all__ = ["OwnerReport", "ReportService", "StatementLine", "TenantStatement"]
