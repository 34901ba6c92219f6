"""Payment registration API endpoints.

- Preview how a (possibly split) payment is allocated over billing periods
- Commit the previewed allocations as payment rows
- Monthly rent coverage of a contract
"""

import logging
import time
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.orm import Session

from rentledger.api.errors import get_engine_config, raise_engine_error
from rentledger.services.config import EngineConfig
from rentledger.services.db import get_db
from rentledger.services.errors import EngineError
from rentledger.services.parsers import parse_form_amount
from rentledger.services.payment_service import (
    PaymentPart,
    PaymentPreview,
    PaymentRegistrationService,
    PaymentRequest,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["payments"])


# Request schemas
class PaymentPartBody(BaseModel):
    """One transfer of a split payment."""

    amount: Decimal
    currency: str = "USD"
    reference: str = ""
    exchange_rate: Optional[Decimal] = None

    @field_validator("amount", "exchange_rate", mode="before")
    @classmethod
    def parse_form_amounts(cls, value):
        return parse_form_amount(value)


class PaymentRequestBody(BaseModel):
    """Payment submission."""

    tenant_id: int
    contract_id: Optional[int] = None
    start_month: int
    start_year: int
    payment_date: Optional[date] = None
    exchange_rate: Optional[Decimal] = None
    parts: list[PaymentPartBody] = Field(min_length=1)
    payment_method: str = "Transferencia"
    notes: str = ""
    auto_approve: Optional[bool] = None

    @field_validator("exchange_rate", mode="before")
    @classmethod
    def parse_form_rate(cls, value):
        return parse_form_amount(value)

    def to_request(self) -> PaymentRequest:
        return PaymentRequest(
            tenant_id=self.tenant_id,
            contract_id=self.contract_id,
            start_month=self.start_month,
            start_year=self.start_year,
            payment_date=self.payment_date or date.today(),
            exchange_rate=self.exchange_rate,
            parts=tuple(
                PaymentPart(
                    amount=part.amount,
                    currency=part.currency,
                    reference=part.reference,
                    exchange_rate=part.exchange_rate,
                )
                for part in self.parts
            ),
            payment_method=self.payment_method,
            notes=self.notes,
            auto_approve=self.auto_approve,
        )


# Response schemas
class AllocationResponse(BaseModel):
    """One billing period allocation."""

    month: int
    year: int
    billing_period: date
    amount: Decimal
    currency: str
    is_full: bool
    source_reference: Optional[str] = None


class PartPreviewResponse(BaseModel):
    """Allocations of one payment part."""

    currency: str
    amount: Decimal
    reference: str
    exchange_rate: Optional[Decimal] = None
    rent_in_currency: Decimal
    allocations: list[AllocationResponse]


class PreviewResponse(BaseModel):
    """Response schema for /payments/preview."""

    contract_id: int
    rent_amount: Decimal
    parts: list[PartPreviewResponse]


class CommittedPaymentResponse(BaseModel):
    """A persisted payment row."""

    id: int
    contract_id: int
    amount: Decimal
    currency: str
    exchange_rate: Optional[Decimal] = None
    billing_period: Optional[date] = None
    status: str
    concept: Optional[str] = None
    reference_number: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CommitResponse(BaseModel):
    """Response schema for /payments/commit."""

    payments: list[CommittedPaymentResponse]


class MonthlyBalanceResponse(BaseModel):
    """Response schema for /contracts/{id}/balance."""

    contract_id: int
    month: int
    year: int
    rent_amount: Decimal
    paid_amount: Decimal
    pending_payments: Decimal
    total_covered: Decimal
    remaining_debt: Decimal
    is_partial: bool
    is_complete: bool
    unconverted_payments: int


def _preview_response(preview: PaymentPreview) -> PreviewResponse:
    return PreviewResponse(
        contract_id=preview.contract.id,
        rent_amount=preview.contract.rent_amount,
        parts=[
            PartPreviewResponse(
                currency=part.part.currency.upper(),
                amount=part.part.amount,
                reference=part.part.reference,
                exchange_rate=part.exchange_rate,
                rent_in_currency=part.rent_in_currency,
                allocations=[
                    AllocationResponse(
                        month=a.month,
                        year=a.year,
                        billing_period=a.billing_period,
                        amount=a.amount,
                        currency=a.currency,
                        is_full=a.is_full,
                        source_reference=a.source_reference,
                    )
                    for a in part.allocations
                ],
            )
            for part in preview.parts
        ],
    )


@router.post("/payments/preview", response_model=PreviewResponse)
def preview_payment(
    body: PaymentRequestBody,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
) -> PreviewResponse:
    """Compute the billing period allocations of a payment without storing it."""
    start_time = time.time()
    try:
        preview = PaymentRegistrationService(db, config).preview(body.to_request())
        logger.debug(
            "payments.preview: tenant_id=%d allocations=%d duration_ms=%d",
            body.tenant_id,
            len(preview.allocations),
            int((time.time() - start_time) * 1000),
        )
        return _preview_response(preview)
    except EngineError as e:
        raise_engine_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error previewing payment for tenant %s", body.tenant_id)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.post("/payments/commit", response_model=CommitResponse, status_code=201)
def commit_payment(
    body: PaymentRequestBody,
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
) -> CommitResponse:
    """Persist one payment row per billing period allocation."""
    try:
        payments = PaymentRegistrationService(db, config).commit(body.to_request())
        return CommitResponse(
            payments=[
                CommittedPaymentResponse(
                    id=p.id,
                    contract_id=p.contract_id,
                    amount=p.amount,
                    currency=p.currency,
                    exchange_rate=p.exchange_rate,
                    billing_period=p.billing_period,
                    status=p.status.value,
                    concept=p.concept,
                    reference_number=p.reference_number,
                )
                for p in payments
            ]
        )
    except EngineError as e:
        raise_engine_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error committing payment for tenant %s", body.tenant_id)
        raise HTTPException(status_code=500, detail="Server error") from e


@router.get("/contracts/{contract_id}/balance", response_model=MonthlyBalanceResponse)
def contract_balance(
    contract_id: int,
    month: int = Query(ge=1, le=12),
    year: int = Query(ge=1900, le=9999),
    db: Session = Depends(get_db),
    config: EngineConfig = Depends(get_engine_config),
) -> MonthlyBalanceResponse:
    """Rent coverage of one billing period."""
    try:
        balance = PaymentRegistrationService(db, config).monthly_balance(contract_id, month, year)
        return MonthlyBalanceResponse(
            contract_id=contract_id, month=month, year=year, **balance._asdict()
        )
    except EngineError as e:
        raise_engine_error(e)
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Error computing balance for contract %s", contract_id)
        raise HTTPException(status_code=500, detail="Server error") from e
