"""Payment allocation and owner revenue distribution services."""

from rentledger.services.aggregation_service import AggregationResult, RevenueAggregator, aggregate
from rentledger.services.allocation_service import BillingPeriodAllocator, PeriodAllocation, allocate
from rentledger.services.currency_service import CurrencyNormalizer
from rentledger.services.errors import (
    ContractNotFoundError,
    EngineError,
    MalformedRecordError,
    MissingExchangeRateError,
    NoRecurringAmountError,
    UnassignedOwnershipWarning,
    ValidationError,
)
from rentledger.services.report_filter import ReportFilterEngine, ScopeFilter, narrow

__all__ = [
    "AggregationResult",
    "BillingPeriodAllocator",
    "ContractNotFoundError",
    "CurrencyNormalizer",
    "EngineError",
    "MalformedRecordError",
    "MissingExchangeRateError",
    "NoRecurringAmountError",
    "PeriodAllocation",
    "ReportFilterEngine",
    "RevenueAggregator",
    "ScopeFilter",
    "UnassignedOwnershipWarning",
    "ValidationError",
    "aggregate",
    "allocate",
    "narrow",
]
