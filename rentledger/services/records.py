"""Typed records consumed by the allocation and distribution engine.

Rows fetched from the database (or any other source) are converted into
these immutable records at the ingestion boundary. A row that fails
validation raises MalformedRecordError; the bulk helpers collect such rows as
SkippedRecord entries instead, so one broken payment never aborts a report.
"""

import datetime
import logging
from decimal import Decimal
from typing import Any, Iterable, Literal, NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from rentledger.services.errors import MalformedRecordError

logger = logging.getLogger(__name__)

PaymentStatusValue = Literal["pending", "approved", "rejected", "paid"]
ExpenseStatusValue = Literal["pending", "paid", "cancelled"]
ContractStatusValue = Literal["active", "expired"]


class SkippedRecord(NamedTuple):
    """A record excluded from computation, with the reason it was excluded."""

    kind: str  # "payment" or "expense"
    record_id: Optional[int]
    reason: str


class _Record(BaseModel):
    model_config = ConfigDict(frozen=True, str_strip_whitespace=True)


class PaymentRecord(_Record):
    """A received payment, resolved to its property."""

    id: Optional[int] = None
    tenant_id: Optional[int] = None
    tenant_name: str = "Desconocido"
    contract_id: Optional[int] = None
    property_id: Optional[int] = None
    property_name: str = ""
    unit_name: str = ""
    date: datetime.date
    amount: Decimal = Field(gt=0)
    currency: str = "USD"
    exchange_rate: Optional[Decimal] = None
    billing_period: Optional[datetime.date] = None
    status: PaymentStatusValue = "pending"
    reference: str = ""
    concept: str = ""
    payment_method: str = ""

    @field_validator("currency")
    @classmethod
    def _upper_currency(cls, value: str) -> str:
        code = value.upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"invalid currency code {value!r}")
        return code


class ExpenseRecord(_Record):
    """An expense charged to a property, in canonical currency."""

    id: Optional[int] = None
    property_id: int
    amount: Decimal = Field(gt=0)
    category: str = "other"
    description: str = ""
    date: datetime.date
    status: ExpenseStatusValue = "pending"


class ContractRecord(_Record):
    """Lease terms needed to allocate payments."""

    id: Optional[int] = None
    tenant_id: Optional[int] = None
    unit_id: Optional[int] = None
    property_id: Optional[int] = None
    rent_amount: Optional[Decimal] = None
    start_date: Optional[datetime.date] = None
    end_date: Optional[datetime.date] = None
    status: ContractStatusValue = "active"


class OwnershipEntry(_Record):
    """An owner's percentage share of one property."""

    property_id: int
    owner_id: int
    owner_name: str = ""
    percentage: Decimal = Field(ge=0, le=100)


OwnershipMap = dict[int, tuple[OwnershipEntry, ...]]


def _enum_value(value: Any) -> Any:
    # ORM columns hold enum members; records hold plain strings
    return value.value if hasattr(value, "value") else value


def _validate(model: type[_Record], data: dict, record_id: Optional[int]) -> Any:
    try:
        return model.model_validate(data)
    except PydanticValidationError as e:
        errors = "; ".join(
            f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise MalformedRecordError(
            f"Invalid {model.__name__} (id={record_id}): {errors}", record_id=record_id
        ) from e


def payment_from_row(row: Any) -> PaymentRecord:
    """Convert a Payment ORM row (with contract/unit/property loaded) to a record.

    The property is resolved through contract -> unit -> property. A row whose
    chain is broken keeps property_id=None; the aggregator reports it as skipped.

    Raises:
        MalformedRecordError: If required fields are missing or invalid
    """
    contract = getattr(row, "contract", None)
    unit = getattr(contract, "unit", None) if contract is not None else None
    prop = getattr(unit, "property", None) if unit is not None else None
    tenant = getattr(row, "tenant", None)

    data = {
        "id": row.id,
        "tenant_id": row.tenant_id,
        "tenant_name": getattr(tenant, "name", None) or "Desconocido",
        "contract_id": row.contract_id,
        "property_id": getattr(unit, "property_id", None),
        "property_name": getattr(prop, "name", None) or "",
        "unit_name": getattr(unit, "name", None) or "",
        "date": row.date,
        "amount": row.amount,
        "currency": row.currency or "USD",
        "exchange_rate": row.exchange_rate,
        "billing_period": row.billing_period,
        "status": _enum_value(row.status),
        "reference": row.reference_number or "",
        "concept": row.concept or "",
        "payment_method": row.payment_method or "",
    }
    return _validate(PaymentRecord, data, row.id)


def expense_from_row(row: Any) -> ExpenseRecord:
    """Convert an Expense ORM row to a record.

    Raises:
        MalformedRecordError: If required fields are missing or invalid
    """
    data = {
        "id": row.id,
        "property_id": row.property_id,
        "amount": row.amount,
        "category": row.category or "other",
        "description": row.description or "",
        "date": row.date,
        "status": _enum_value(row.status),
    }
    return _validate(ExpenseRecord, data, row.id)


def contract_from_row(row: Any) -> ContractRecord:
    """Convert a Contract ORM row to a record."""
    unit = getattr(row, "unit", None)
    data = {
        "id": row.id,
        "tenant_id": row.tenant_id,
        "unit_id": row.unit_id,
        "property_id": getattr(unit, "property_id", None),
        "rent_amount": row.rent_amount,
        "start_date": row.start_date,
        "end_date": row.end_date,
        "status": _enum_value(row.status),
    }
    return _validate(ContractRecord, data, row.id)


def ownership_map_from_rows(rows: Iterable[Any]) -> OwnershipMap:
    """Group PropertyOwner rows into property_id -> ownership entries.

    Entries are ordered by owner_id so results do not depend on fetch order.
    """
    grouped: dict[int, list[OwnershipEntry]] = {}
    for row in rows:
        owner = getattr(row, "owner", None)
        entry = _validate(
            OwnershipEntry,
            {
                "property_id": row.property_id,
                "owner_id": row.owner_id,
                "owner_name": getattr(owner, "name", None) or "",
                "percentage": row.percentage,
            },
            getattr(row, "id", None),
        )
        grouped.setdefault(entry.property_id, []).append(entry)

    return {
        property_id: tuple(sorted(entries, key=lambda e: e.owner_id))
        for property_id, entries in grouped.items()
    }


def ingest_payments(rows: Iterable[Any]) -> tuple[list[PaymentRecord], list[SkippedRecord]]:
    """Convert payment rows, collecting malformed ones instead of raising."""
    records: list[PaymentRecord] = []
    skipped: list[SkippedRecord] = []
    for row in rows:
        try:
            records.append(payment_from_row(row))
        except MalformedRecordError as e:
            logger.warning("Skipping malformed payment: %s", e.message)
            skipped.append(SkippedRecord("payment", e.record_id, e.message))
    return records, skipped


def ingest_expenses(rows: Iterable[Any]) -> tuple[list[ExpenseRecord], list[SkippedRecord]]:
    """Convert expense rows, collecting malformed ones instead of raising."""
    records: list[ExpenseRecord] = []
    skipped: list[SkippedRecord] = []
    for row in rows:
        try:
            records.append(expense_from_row(row))
        except MalformedRecordError as e:
            logger.warning("Skipping malformed expense: %s", e.message)
            skipped.append(SkippedRecord("expense", e.record_id, e.message))
    return records, skipped
