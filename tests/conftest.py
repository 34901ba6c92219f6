"""Shared pytest fixtures: in-memory database and a small rental portfolio."""

from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy.orm import sessionmaker

from rentledger.models import (
    Base,
    Contract,
    ContractStatus,
    Expense,
    ExpenseStatus,
    Owner,
    Payment,
    PaymentStatus,
    Property,
    PropertyOwner,
    Tenant,
    Unit,
)
from rentledger.services.config import EngineConfig
from rentledger.services.db import build_engine


@pytest.fixture
def engine_config():
    """Engine configuration independent of the developer's environment."""
    return EngineConfig(
        database_url="sqlite:///:memory:",
        canonical_currency="USD",
        supported_currencies=("USD", "VES"),
        log_file="logs/test.log",
        auto_approve_payments=False,
    )


@pytest.fixture
def db_session():
    """Create test database session."""
    engine = build_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()
    yield session
    session.close()
    engine.dispose()


@pytest.fixture
def portfolio(db_session):
    """Two properties: "Residencias Sol" (Ana 60% / Luis 40%) and "Local Centro" (no owners).

    Returns a dict of the created rows for direct access in tests.
    """
    ana = Owner(name="Ana Pérez", doc_id="V-1000001", email="ana@example.com")
    luis = Owner(name="Luis Gómez", doc_id="V-1000002")
    sol = Property(name="Residencias Sol", address="Av. Principal 1")
    centro = Property(name="Local Centro", address="Calle 2")
    db_session.add_all([ana, luis, sol, centro])
    db_session.flush()

    db_session.add_all(
        [
            PropertyOwner(property_id=sol.id, owner_id=ana.id, percentage=Decimal("60")),
            PropertyOwner(property_id=sol.id, owner_id=luis.id, percentage=Decimal("40")),
        ]
    )

    apt = Unit(property_id=sol.id, name="Apto 1A", status="occupied")
    shop = Unit(property_id=centro.id, name="Local 1", unit_type="local", status="occupied")
    maria = Tenant(name="María Rojas", doc_id="V-2000001", email="maria@example.com")
    pedro = Tenant(name="Pedro Díaz", doc_id="V-2000002")
    db_session.add_all([apt, shop, maria, pedro])
    db_session.flush()

    maria_contract = Contract(
        tenant_id=maria.id,
        unit_id=apt.id,
        rent_amount=Decimal("100.00"),
        start_date=date(2024, 1, 1),
        status=ContractStatus.ACTIVE,
    )
    pedro_contract = Contract(
        tenant_id=pedro.id,
        unit_id=shop.id,
        rent_amount=Decimal("250.00"),
        start_date=date(2023, 6, 1),
        status=ContractStatus.ACTIVE,
    )
    db_session.add_all([maria_contract, pedro_contract])
    db_session.commit()

    return {
        "ana": ana,
        "luis": luis,
        "sol": sol,
        "centro": centro,
        "apt": apt,
        "shop": shop,
        "maria": maria,
        "pedro": pedro,
        "maria_contract": maria_contract,
        "pedro_contract": pedro_contract,
    }


@pytest.fixture
def add_payment(db_session):
    """Factory inserting a payment row."""

    def _add(contract, paid_on, amount, currency="USD", rate=None, status=PaymentStatus.APPROVED,
             billing_period=None, concept="Canon"):
        payment = Payment(
            tenant_id=contract.tenant_id,
            contract_id=contract.id,
            date=paid_on,
            amount=Decimal(str(amount)),
            currency=currency,
            exchange_rate=Decimal(str(rate)) if rate is not None else None,
            billing_period=billing_period,
            status=status,
            concept=concept,
            payment_method="Transferencia",
        )
        db_session.add(payment)
        db_session.commit()
        return payment

    return _add


@pytest.fixture
def add_expense(db_session):
    """Factory inserting an expense row."""

    def _add(prop, spent_on, amount, category="maintenance", status=ExpenseStatus.PAID):
        expense = Expense(
            property_id=prop.id,
            amount=Decimal(str(amount)),
            category=category,
            description=f"{category} {spent_on.isoformat()}",
            date=spent_on,
            status=status,
        )
        db_session.add(expense)
        db_session.commit()
        return expense

    return _add
