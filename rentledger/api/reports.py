"""Reporting API endpoints (income/expense ledgers, owner distribution, tenant statements)."""

import logging
import time
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session

from rentledger.api.errors import get_engine_config, raise_engine_error
from rentledger.services.aggregation_service import AggregationResult
from rentledger.services.config import EngineConfig
from rentledger.services.db import get_db
from rentledger.services.errors import EngineError
from rentledger.services.report_filter import ScopeFilter
from rentledger.services.report_service import ReportService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["reports"])


class ScopeBody(BaseModel):
    """Report scope. Months may be numbers or Spanish names; empty means whole year."""

    year: int
    months: list[int] = Field(default_factory=list)
    month_names: list[str] = Field(default_factory=list)
    property_ids: list[int] = Field(default_factory=list)
    owner_ids: list[int] = Field(default_factory=list)

    @model_validator(mode="after")
    def _one_month_format(self) -> "ScopeBody":
        if self.months and self.month_names:
            raise ValueError("Use either months or month_names, not both")
        return self

    def to_scope(self) -> ScopeFilter:
        if self.month_names:
            return ScopeFilter.from_month_names(
                self.year, self.month_names, self.property_ids, self.owner_ids
            )
        return ScopeFilter(
            year=self.year,
            months=frozenset(self.months),
            property_ids=frozenset(self.property_ids),
            owner_ids=frozenset(self.owner_ids),
        )


class LedgerEntryResponse(BaseModel):
    date: date
    tenant_name: str
    concept: str
    credit: Decimal
    currency: str
    rate: Optional[Decimal] = None
    canonical_amount: Optional[Decimal] = None


class PropertyNetResponse(BaseModel):
    property_id: int
    property_name: str
    income: Decimal
    expense: Decimal
    net: Decimal
    has_owners: bool


class OwnerShareResponse(BaseModel):
    owner_id: int
    owner_name: str
    amount: Decimal
    percentage_of_total: Decimal
    property_count: int


class UnassignedResponse(BaseModel):
    property_id: int
    property_name: str
    net: Decimal


class SkippedResponse(BaseModel):
    kind: str
    record_id: Optional[int] = None
    reason: str


class IncomeExpenseResponse(BaseModel):
    """Response schema for /reports/income-expense."""

    canonical_currency: str
    ledger_by_currency: dict[str, list[LedgerEntryResponse]]
    per_property: list[PropertyNetResponse]
    per_owner: list[OwnerShareResponse]
    unassigned: list[UnassignedResponse]
    expense_distribution: dict[str, Decimal]
    total_income: Decimal
    total_expense: Decimal
    total_net: Decimal
    distributed_total: Decimal
    undistributed_total: Decimal
    unassigned_total: Decimal
    skipped_records: int
    skipped: list[SkippedResponse]


class OwnerReportResponse(BaseModel):
    """Response schema for /reports/owners."""

    shares: list[OwnerShareResponse]
    unassigned: list[UnassignedResponse]
    distributed_total: Decimal
    unassigned_total: Decimal
    skipped_records: int


class StatementLineResponse(BaseModel):
    date: date
    concept: str
    property_name: str
    unit_name: str
    amount: Optional[Decimal] = None
    amount_original: Decimal
    currency: str
    exchange_rate: Optional[Decimal] = None
    billing_period: Optional[date] = None
    reference: str
    method: str
    status: str


class TenantStatementResponse(BaseModel):
    """Response schema for /reports/tenants/{id}/statement."""

    tenant_id: int
    tenant_name: str
    start_date: date
    end_date: date
    lines: list[StatementLineResponse]
    total_paid: Decimal
    skipped_records: int


def _income_expense_response(result: AggregationResult) -> IncomeExpenseResponse:
    return IncomeExpenseResponse(
        canonical_currency=result.canonical_currency,
        ledger_by_currency={
            currency: [
                LedgerEntryResponse(
                    date=e.date,
                    tenant_name=e.tenant_name,
                    concept=e.concept,
                    credit=e.credit,
                    currency=e.currency,
                    rate=e.rate,
                    canonical_amount=e.canonical_amount,
                )
                for e in entries
            ]
            for currency, entries in result.ledger_by_currency.items()
        },
        per_property=[PropertyNetResponse(**p._asdict()) for p in result.per_property],
        per_owner=[OwnerShareResponse(**o._asdict()) for o in result.per_owner],
        unassigned=[UnassignedResponse(**u._asdict()) for u in result.unassigned],
        expense_distribution=result.expense_distribution,
        total_income=result.total_income,
        total_expense=result.total_expense,
        total_net=result.total_net,
        distributed_total=result.distributed_total,
        undistributed_total=result.undistributed_total,
        unassigned_total=result.unassigned_total,
        skipped_records=result.skipped_records,
        skipped=[SkippedResponse(**s._asdict()) for s in result.skipped],
    )


@router.post("/income-expense", response_model=IncomeExpenseResponse)
def income_expense_report(
    body: ScopeBody,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
) -> IncomeExpenseResponse:
    """Ledgers per currency, per-property nets and owner distribution."""
    start_time = time.time()
    try:
        result = ReportService(db, config).income_expense_report(body.to_scope())
        logger.debug(
            "reports.income_expense: year=%d properties=%d duration_ms=%d",
            body.year,
            len(result.per_property),
            int((time.time() - start_time) * 1000),
        )
        return _income_expense_response(result)
    except EngineError as e:
        raise_engine_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error generating income/expense report")
        raise HTTPException(status_code=500, detail="Server error") from e


@router.post("/owners", response_model=OwnerReportResponse)
def owner_report(
    body: ScopeBody,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
) -> OwnerReportResponse:
    """Per-owner share of net income."""
    try:
        report = ReportService(db, config).owner_report(body.to_scope())
        return OwnerReportResponse(
            shares=[OwnerShareResponse(**s._asdict()) for s in report.shares],
            unassigned=[UnassignedResponse(**u._asdict()) for u in report.unassigned],
            distributed_total=report.distributed_total,
            unassigned_total=report.unassigned_total,
            skipped_records=report.skipped_records,
        )
    except EngineError as e:
        raise_engine_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error generating owner report")
        raise HTTPException(status_code=500, detail="Server error") from e


@router.get("/tenants/{tenant_id}/statement", response_model=TenantStatementResponse)
def tenant_statement(
    tenant_id: int,
    start: date = Query(...),
    end: date = Query(...),
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
) -> TenantStatementResponse:
    """Approved payments of a tenant in canonical currency."""
    try:
        statement = ReportService(db, config).tenant_statement(tenant_id, start, end)
        return TenantStatementResponse(
            tenant_id=statement.tenant_id,
            tenant_name=statement.tenant_name,
            start_date=statement.start_date,
            end_date=statement.end_date,
            lines=[StatementLineResponse(**line._asdict()) for line in statement.lines],
            total_paid=statement.total_paid,
            skipped_records=len(statement.skipped),
        )
    except EngineError as e:
        raise_engine_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error generating statement for tenant %s", tenant_id)
        raise HTTPException(status_code=500, detail="Server error") from e
