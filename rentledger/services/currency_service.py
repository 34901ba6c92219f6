"""Currency normalization between the canonical reporting currency and local currencies.

Exchange rates express local units per one canonical unit (e.g. VES per USD):
- to_canonical: local amount / rate
- to_local: canonical amount * rate

A missing or non-positive rate is never treated as zero; it raises
MissingExchangeRateError and the caller decides whether to skip, abort or ask
the user for a rate.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable, Optional

from rentledger.services.config import EngineConfig
from rentledger.services.errors import MissingExchangeRateError, ValidationError

CENT = Decimal("0.01")


def to_decimal(value, name: str = "amount") -> Decimal:
    """Coerce int/float/str/Decimal to Decimal without binary float artifacts.

    Raises:
        ValidationError: If value is None, not numeric, NaN or infinite
    """
    if value is None:
        raise ValidationError(f"{name} is required")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value))
        except (InvalidOperation, ValueError) as e:
            raise ValidationError(f"{name} is not a valid number: {value!r}") from e
    if not result.is_finite():
        raise ValidationError(f"{name} must be a finite number, got {value!r}")
    return result


class CurrencyNormalizer:
    """Convert amounts between the canonical currency and supported local currencies."""

    def __init__(
        self,
        canonical_currency: str = "USD",
        supported_currencies: Iterable[str] = ("USD", "VES"),
    ):
        """Initialize normalizer.

        Args:
            canonical_currency: Reporting currency code
            supported_currencies: Codes accepted on input (canonical is always included)
        """
        self.canonical_currency = canonical_currency.upper()
        self.supported_currencies = frozenset(
            code.upper() for code in supported_currencies
        ) | {self.canonical_currency}

    @classmethod
    def from_config(cls, config: EngineConfig) -> "CurrencyNormalizer":
        """Build a normalizer from loaded configuration."""
        return cls(config.canonical_currency, config.supported_currencies)

    def check_currency(self, currency: Optional[str]) -> str:
        """Return the upper-cased currency code or raise ValidationError if unsupported."""
        if not currency:
            raise ValidationError("currency is required")
        code = currency.strip().upper()
        if code not in self.supported_currencies:
            raise ValidationError(
                f"Unsupported currency {currency!r}; expected one of "
                f"{', '.join(sorted(self.supported_currencies))}"
            )
        return code

    def is_canonical(self, currency: str) -> bool:
        return self.check_currency(currency) == self.canonical_currency

    def _require_rate(self, currency: str, exchange_rate) -> Decimal:
        if exchange_rate is None:
            raise MissingExchangeRateError(currency)
        rate = to_decimal(exchange_rate, "exchange_rate")
        if rate <= 0:
            raise MissingExchangeRateError(
                currency,
                f"Exchange rate for {currency} must be positive, got {rate}",
            )
        return rate

    def to_canonical(self, amount, currency: str, exchange_rate=None) -> Decimal:
        """Convert an amount in `currency` to the canonical currency.

        Args:
            amount: Amount in the source currency
            currency: Source currency code
            exchange_rate: Source units per canonical unit (ignored for canonical)

        Returns:
            Unrounded Decimal amount in the canonical currency

        Raises:
            MissingExchangeRateError: If a conversion is needed and rate is absent or <= 0
            ValidationError: If currency is unsupported or amount is not numeric
        """
        value = to_decimal(amount)
        code = self.check_currency(currency)
        if code == self.canonical_currency:
            return value
        return value / self._require_rate(code, exchange_rate)

    def to_local(self, amount_in_canonical, target_currency: str, exchange_rate=None) -> Decimal:
        """Convert a canonical amount into `target_currency`.

        Used to express a contract's monthly rent in the currency of an
        incoming payment before allocating that payment.

        Raises:
            MissingExchangeRateError: If target is not canonical and rate is absent or <= 0
        """
        value = to_decimal(amount_in_canonical)
        code = self.check_currency(target_currency)
        if code == self.canonical_currency:
            return value
        return value * self._require_rate(code, exchange_rate)

    @staticmethod
    def quantize(amount) -> Decimal:
        """Round to the currency minor unit (2 places, half up)."""
        return to_decimal(amount).quantize(CENT, rounding=ROUND_HALF_UP)
