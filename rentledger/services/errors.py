"""Domain exceptions for payment allocation and revenue distribution.

Every error carries a stable code and an HTTP status so the API layer can
turn it into a response without knowing each type.
"""


class EngineError(Exception):
    """Base error for the allocation and distribution engine."""

    code = "engine_error"
    http_status = 400

    def __init__(self, message: str):
        """Initialize error."""
        self.message = message
        super().__init__(message)


class ValidationError(EngineError):
    """Invalid input to an engine operation (non-positive amount, bad month, etc.)."""

    code = "validation_error"


class MalformedRecordError(ValidationError):
    """A fetched row failed typed validation at the ingestion boundary."""

    code = "malformed_record"

    def __init__(self, message: str, record_id: int | None = None):
        self.record_id = record_id
        super().__init__(message)


class MissingExchangeRateError(EngineError):
    """A non-canonical amount needs conversion but no positive rate was supplied."""

    code = "missing_exchange_rate"

    def __init__(self, currency: str, message: str | None = None):
        self.currency = currency
        super().__init__(
            message or f"Exchange rate required to convert {currency} amounts"
        )


class NoRecurringAmountError(EngineError):
    """Allocation requested against a contract without a positive rent amount."""

    code = "no_recurring_amount"
    http_status = 409


class ContractNotFoundError(EngineError):
    """No contract could be resolved for the tenant or id."""

    code = "contract_not_found"
    http_status = 404


class UnassignedOwnershipWarning(UserWarning):
    """A property produced net income but has no registered owners."""

    pass


def error_response(error: EngineError) -> dict:
    """Create a standardized error payload."""
    return {
        "error": {
            "code": error.code,
            "message": error.message,
        }
    }
