"""Integration tests for income/expense, owner and tenant reports."""

from datetime import date
from decimal import Decimal

import pytest

from rentledger.models import ExpenseStatus, PaymentStatus
from rentledger.services.errors import UnassignedOwnershipWarning, ValidationError
from rentledger.services.report_filter import ScopeFilter
from rentledger.services.report_service import ReportService


@pytest.fixture
def service(db_session, engine_config):
    """Create report service bound to the test database."""
    return ReportService(db_session, config=engine_config)


@pytest.fixture
def ledger(portfolio, add_payment, add_expense):
    """A first quarter of payments and expenses for both properties."""
    maria = portfolio["maria_contract"]
    pedro = portfolio["pedro_contract"]

    add_payment(maria, date(2024, 1, 10), "500", billing_period=date(2024, 1, 1))
    add_payment(maria, date(2024, 1, 15), "999", status=PaymentStatus.PENDING)
    add_payment(maria, date(2024, 2, 10), "4000", "VES", rate="40", concept=None)
    add_payment(maria, date(2024, 3, 10), "200")
    add_payment(pedro, date(2024, 1, 12), "250")

    add_expense(portfolio["sol"], date(2024, 1, 20), "100", "maintenance")
    add_expense(portfolio["sol"], date(2024, 2, 1), "50", "tax", status=ExpenseStatus.PENDING)
    add_expense(portfolio["centro"], date(2024, 1, 25), "50", "utilities")
    return portfolio


class TestIncomeExpenseReport:
    """Test the full report pipeline against the database."""

    def test_non_contiguous_months(self, service, ledger):
        """January and March exclude February rows fetched by the date range."""
        with pytest.warns(UnassignedOwnershipWarning):
            result = service.income_expense_report(ScopeFilter(year=2024, months={1, 3}))

        nets = {p.property_name: p for p in result.per_property}
        assert nets["Residencias Sol"].income == Decimal("700.00")
        assert nets["Residencias Sol"].expense == Decimal("100.00")
        assert nets["Residencias Sol"].net == Decimal("600.00")
        assert nets["Local Centro"].net == Decimal("200.00")
        assert list(result.ledger_by_currency) == ["USD"]
        assert [e.credit for e in result.ledger_by_currency["USD"]] == [
            Decimal("500.00"),
            Decimal("250.00"),
            Decimal("200.00"),
        ]

    def test_owner_shares_and_unassigned(self, service, ledger):
        with pytest.warns(UnassignedOwnershipWarning):
            result = service.income_expense_report(ScopeFilter(year=2024))

        shares = {s.owner_name: s.amount for s in result.per_owner}
        assert shares == {"Ana Pérez": Decimal("420.00"), "Luis Gómez": Decimal("280.00")}
        assert [(u.property_name, u.net) for u in result.unassigned] == [
            ("Local Centro", Decimal("200.00"))
        ]
        assert result.distributed_total + result.unassigned_total == result.total_net

    def test_ves_ledger_and_canonical_totals(self, service, ledger):
        result = service.income_expense_report(ScopeFilter(year=2024, months={2}))

        entry = result.ledger_by_currency["VES"][0]
        assert entry.credit == Decimal("4000.00")
        assert entry.canonical_amount == Decimal("100.00")
        assert entry.tenant_name == "María Rojas"
        assert result.total_income == Decimal("100.00")
        assert result.total_expense == Decimal("0.00")

    def test_pending_rows_not_counted(self, service, ledger):
        with pytest.warns(UnassignedOwnershipWarning):
            result = service.income_expense_report(ScopeFilter(year=2024, months={1}))

        assert result.total_income == Decimal("750.00")
        assert result.expense_distribution == {
            "maintenance": Decimal("100.00"),
            "utilities": Decimal("50.00"),
        }

    def test_missing_rate_counted_as_skipped(self, service, ledger, add_payment):
        add_payment(ledger["maria_contract"], date(2024, 3, 20), "8000", "VES")

        result = service.income_expense_report(
            ScopeFilter(year=2024, months={3}, property_ids={ledger["sol"].id})
        )

        assert result.total_income == Decimal("200.00")
        assert result.skipped_records == 1
        assert result.ledger_by_currency["VES"][0].canonical_amount is None

    def test_owner_filter(self, service, ledger):
        """Only properties of the selected owner are included."""
        scope = ScopeFilter(year=2024, owner_ids={ledger["luis"].id})

        result = service.income_expense_report(scope)

        assert [p.property_name for p in result.per_property] == ["Residencias Sol"]
        assert [(s.owner_name, s.amount) for s in result.per_owner] == [
            ("Luis Gómez", Decimal("280.00"))
        ]
        assert result.excluded_owner_total == Decimal("420.00")
        assert result.unassigned == ()

    def test_empty_scope(self, service, ledger):
        result = service.income_expense_report(ScopeFilter(year=2023))

        assert result.per_property == ()
        assert result.per_owner == ()
        assert result.ledger_by_currency == {"USD": ()}


class TestOwnerReport:
    """Test the owner distribution view."""

    def test_owner_report(self, service, ledger):
        with pytest.warns(UnassignedOwnershipWarning):
            report = service.owner_report(ScopeFilter(year=2024, months={1, 2, 3}))

        assert [s.percentage_of_total for s in report.shares] == [Decimal("60.00"), Decimal("40.00")]
        assert report.distributed_total == Decimal("700.00")
        assert report.unassigned_total == Decimal("200.00")
        assert report.skipped_records == 0


class TestTenantStatement:
    """Test tenant payment statements."""

    def test_statement_lines(self, service, ledger):
        statement = service.tenant_statement(
            ledger["maria"].id, date(2024, 1, 1), date(2024, 3, 31)
        )

        assert statement.tenant_name == "María Rojas"
        assert [line.amount for line in statement.lines] == [
            Decimal("500.00"),
            Decimal("100.00"),
            Decimal("200.00"),
        ]
        assert statement.total_paid == Decimal("800.00")
        assert statement.lines[0].property_name == "Residencias Sol"
        assert statement.lines[0].unit_name == "Apto 1A"
        assert statement.lines[1].concept == "Pago de alquiler"
        assert statement.lines[1].currency == "VES"
        assert statement.lines[0].reference == "-"

    def test_statement_skips_unconverted(self, service, ledger, add_payment):
        add_payment(ledger["maria_contract"], date(2024, 3, 20), "8000", "VES")

        statement = service.tenant_statement(ledger["maria"].id, date(2024, 3, 1), date(2024, 3, 31))

        assert [line.amount for line in statement.lines] == [Decimal("200.00"), None]
        assert statement.total_paid == Decimal("200.00")
        assert len(statement.skipped) == 1

    def test_statement_keeps_unsupported_currency_line(self, service, ledger, add_payment):
        """A EUR row is listed without an amount instead of aborting the statement."""
        add_payment(ledger["maria_contract"], date(2024, 3, 21), "90", "EUR", rate="1")

        statement = service.tenant_statement(ledger["maria"].id, date(2024, 3, 1), date(2024, 3, 31))

        assert [(line.currency, line.amount) for line in statement.lines] == [
            ("USD", Decimal("200.00")),
            ("EUR", None),
        ]
        assert statement.total_paid == Decimal("200.00")
        assert len(statement.skipped) == 1

    def test_inverted_range(self, service, ledger):
        with pytest.raises(ValidationError, match="is after"):
            service.tenant_statement(ledger["maria"].id, date(2024, 3, 1), date(2024, 1, 1))

    def test_unknown_tenant(self, service, ledger):
        with pytest.raises(ValidationError, match="not found"):
            service.tenant_statement(999, date(2024, 1, 1), date(2024, 3, 31))
