"""Integration tests for payment preview, commit and monthly balance."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import select

from rentledger.models import Contract, ContractStatus, Payment, PaymentStatus, Tenant
from rentledger.services.errors import (
    ContractNotFoundError,
    MissingExchangeRateError,
    NoRecurringAmountError,
    ValidationError,
)
from rentledger.services.payment_service import (
    PaymentPart,
    PaymentRegistrationService,
    PaymentRequest,
)


@pytest.fixture
def service(db_session, engine_config):
    """Create payment registration service bound to the test database."""
    return PaymentRegistrationService(db_session, config=engine_config)


def _request(tenant, *parts, month=3, year=2024, **kwargs):
    return PaymentRequest(
        tenant_id=tenant.id,
        start_month=month,
        start_year=year,
        parts=tuple(parts),
        payment_date=date(2024, 3, 5),
        **kwargs,
    )


class TestPaymentPreview:
    """Test allocation previews against stored contracts."""

    def test_usd_preview(self, service, portfolio, db_session):
        """150 USD against a 100 USD rent previews March full and April partial."""
        preview = service.preview(_request(portfolio["maria"], PaymentPart(Decimal("150"))))

        assert preview.contract.id == portfolio["maria_contract"].id
        assert [(a.month, a.amount, a.is_full) for a in preview.allocations] == [
            (3, Decimal("100.00"), True),
            (4, Decimal("50.00"), False),
        ]
        assert db_session.execute(select(Payment)).scalars().all() == []

    def test_ves_preview_converts_rent(self, service, portfolio):
        """Rent is expressed in VES at the part's rate before allocating."""
        part = PaymentPart(Decimal("6000"), "VES", reference="0123", exchange_rate=Decimal("40"))

        preview = service.preview(_request(portfolio["maria"], part))

        assert preview.parts[0].rent_in_currency == Decimal("4000.00")
        assert [(a.amount, a.currency) for a in preview.allocations] == [
            (Decimal("4000.00"), "VES"),
            (Decimal("2000.00"), "VES"),
        ]

    def test_request_rate_applies_to_parts_without_rate(self, service, portfolio):
        part = PaymentPart(Decimal("4000"), "VES", reference="0123")

        preview = service.preview(
            _request(portfolio["maria"], part, exchange_rate=Decimal("40"))
        )

        assert preview.parts[0].exchange_rate == Decimal("40")
        assert preview.allocations[0].is_full is True

    def test_ves_without_rate_asks_for_one(self, service, portfolio):
        part = PaymentPart(Decimal("4000"), "VES", reference="0123")

        with pytest.raises(MissingExchangeRateError, match="Enter an exchange rate"):
            service.preview(_request(portfolio["maria"], part))

    def test_ves_without_reference_rejected(self, service, portfolio):
        part = PaymentPart(Decimal("4000"), "VES", exchange_rate=Decimal("40"))

        with pytest.raises(ValidationError, match="reference number is required"):
            service.preview(_request(portfolio["maria"], part))

    def test_empty_parts_rejected(self, service, portfolio):
        with pytest.raises(ValidationError, match="At least one payment part"):
            service.preview(_request(portfolio["maria"]))

    def test_invalid_month_rejected(self, service, portfolio):
        with pytest.raises(ValidationError):
            service.preview(_request(portfolio["maria"], PaymentPart(Decimal("100")), month=13))

    def test_tenant_without_contract(self, service, db_session):
        tenant = Tenant(name="Sin Contrato")
        db_session.add(tenant)
        db_session.commit()

        with pytest.raises(ContractNotFoundError):
            service.preview(_request(tenant, PaymentPart(Decimal("100"))))

    def test_contract_without_rent(self, service, portfolio, db_session):
        contract = portfolio["maria_contract"]
        contract.rent_amount = None
        db_session.commit()

        with pytest.raises(NoRecurringAmountError):
            service.preview(_request(portfolio["maria"], PaymentPart(Decimal("100"))))

    def test_contract_of_other_tenant_rejected(self, service, portfolio):
        request = _request(
            portfolio["maria"],
            PaymentPart(Decimal("100")),
            contract_id=portfolio["pedro_contract"].id,
        )

        with pytest.raises(ValidationError, match="does not belong"):
            service.preview(request)

    def test_active_contract_preferred_over_newer_expired(self, service, portfolio, db_session):
        maria = portfolio["maria"]
        expired = Contract(
            tenant_id=maria.id,
            unit_id=portfolio["apt"].id,
            rent_amount=Decimal("80.00"),
            start_date=date(2025, 1, 1),
            status=ContractStatus.EXPIRED,
        )
        db_session.add(expired)
        db_session.commit()

        assert service.find_active_contract(maria.id).id == portfolio["maria_contract"].id


class TestPaymentCommit:
    """Test persisting one payment row per allocation."""

    def test_commit_matches_preview(self, service, portfolio):
        request = _request(portfolio["maria"], PaymentPart(Decimal("250"), reference="T-1"))

        preview = service.preview(request)
        payments = service.commit(request)

        assert [(p.billing_period, p.amount) for p in payments] == [
            (a.billing_period, a.amount) for a in preview.allocations
        ]
        assert [p.concept for p in payments] == [
            "Canon marzo 2024",
            "Canon abril 2024",
            "Canon mayo 2024",
        ]
        assert all(p.status == PaymentStatus.PENDING for p in payments)
        assert all(p.reference_number == "T-1" for p in payments)
        assert all(p.date == date(2024, 3, 5) for p in payments)

    def test_commit_auto_approve(self, service, portfolio):
        payments = service.commit(
            _request(portfolio["maria"], PaymentPart(Decimal("100")), auto_approve=True)
        )

        assert [p.status for p in payments] == [PaymentStatus.APPROVED]

    def test_split_payment_concepts(self, service, portfolio):
        """A payment in two currencies marks every row as a part."""
        request = _request(
            portfolio["maria"],
            PaymentPart(Decimal("50")),
            PaymentPart(Decimal("2000"), "VES", reference="0456", exchange_rate=Decimal("40")),
        )

        payments = service.commit(request)

        assert [(p.currency, p.amount) for p in payments] == [
            ("USD", Decimal("50.00")),
            ("VES", Decimal("2000.00")),
        ]
        assert all(p.concept == "Canon marzo 2024 (Parte)" for p in payments)
        assert payments[1].exchange_rate == Decimal("40")

    def test_failed_preview_writes_nothing(self, service, portfolio, db_session):
        request = _request(
            portfolio["maria"],
            PaymentPart(Decimal("100")),
            PaymentPart(Decimal("4000"), "VES", reference="0123"),
        )

        with pytest.raises(MissingExchangeRateError):
            service.commit(request)

        assert db_session.execute(select(Payment)).scalars().all() == []

    def test_split_parts_continue_after_full_month(self, service, portfolio):
        """A second part starts after the month the first part settled."""
        contract = portfolio["maria_contract"]
        request = _request(
            portfolio["maria"],
            PaymentPart(Decimal("100")),
            PaymentPart(Decimal("4000"), "VES", reference="0456", exchange_rate=Decimal("40")),
            auto_approve=True,
        )

        payments = service.commit(request)

        assert [(p.billing_period, p.currency, p.amount) for p in payments] == [
            (date(2024, 3, 1), "USD", Decimal("100.00")),
            (date(2024, 4, 1), "VES", Decimal("4000.00")),
        ]
        assert service.monthly_balance(contract.id, 3, 2024).paid_amount == Decimal("100.00")
        assert service.monthly_balance(contract.id, 4, 2024).paid_amount == Decimal("100.00")

    def test_split_parts_top_up_partial_month(self, service, portfolio):
        """The second part first completes the month the first part left open."""
        contract = portfolio["maria_contract"]
        request = _request(
            portfolio["maria"],
            PaymentPart(Decimal("50")),
            PaymentPart(Decimal("6000"), "VES", reference="0456", exchange_rate=Decimal("40")),
            auto_approve=True,
        )

        preview = service.preview(request)
        payments = service.commit(request)

        assert [(a.month, a.currency, a.amount, a.is_full) for a in preview.allocations] == [
            (3, "USD", Decimal("50.00"), False),
            (3, "VES", Decimal("2000.00"), True),
            (4, "VES", Decimal("4000.00"), True),
        ]
        assert [p.concept for p in payments] == [
            "Canon marzo 2024 (Parte)",
            "Canon marzo 2024 (Parte)",
            "Canon abril 2024 (Parte)",
        ]
        for month in (3, 4):
            balance = service.monthly_balance(contract.id, month, 2024)
            assert balance.paid_amount == Decimal("100.00")
            assert balance.is_complete is True


class TestMonthlyBalance:
    """Test rent coverage for one month."""

    def test_paid_and_pending(self, service, portfolio, add_payment):
        contract = portfolio["maria_contract"]
        march = date(2024, 3, 1)
        add_payment(contract, date(2024, 3, 2), "60", billing_period=march)
        add_payment(
            contract, date(2024, 3, 3), "1600", "VES", rate="40",
            status=PaymentStatus.PENDING, billing_period=march,
        )
        add_payment(
            contract, date(2024, 3, 4), "500", status=PaymentStatus.REJECTED, billing_period=march
        )

        balance = service.monthly_balance(contract.id, 3, 2024)

        assert balance.rent_amount == Decimal("100.00")
        assert balance.paid_amount == Decimal("60.00")
        assert balance.pending_payments == Decimal("40.00")
        assert balance.total_covered == Decimal("100.00")
        assert balance.remaining_debt == Decimal("0.00")
        assert balance.is_partial is True
        assert balance.is_complete is True

    def test_unconverted_payment_counted(self, service, portfolio, add_payment):
        contract = portfolio["maria_contract"]
        add_payment(contract, date(2024, 4, 2), "4000", "VES", billing_period=date(2024, 4, 1))

        balance = service.monthly_balance(contract.id, 4, 2024)

        assert balance.paid_amount == Decimal("0.00")
        assert balance.unconverted_payments == 1
        assert balance.remaining_debt == Decimal("100.00")
        assert balance.is_complete is False

    def test_unsupported_currency_counted_as_unconverted(self, service, portfolio, add_payment):
        """A row in a currency outside the supported set does not abort the balance."""
        contract = portfolio["maria_contract"]
        april = date(2024, 4, 1)
        add_payment(contract, date(2024, 4, 2), "60", billing_period=april)
        add_payment(contract, date(2024, 4, 3), "40", "EUR", rate="1", billing_period=april)

        balance = service.monthly_balance(contract.id, 4, 2024)

        assert balance.paid_amount == Decimal("60.00")
        assert balance.unconverted_payments == 1
        assert balance.remaining_debt == Decimal("40.00")

    def test_other_months_ignored(self, service, portfolio, add_payment):
        contract = portfolio["maria_contract"]
        add_payment(contract, date(2024, 3, 2), "100", billing_period=date(2024, 2, 1))

        balance = service.monthly_balance(contract.id, 3, 2024)

        assert balance.total_covered == Decimal("0.00")

    def test_unknown_contract(self, service):
        with pytest.raises(ContractNotFoundError):
            service.monthly_balance(999, 1, 2024)

    def test_invalid_month(self, service, portfolio):
        with pytest.raises(ValidationError):
            service.monthly_balance(portfolio["maria_contract"].id, 0, 2024)
