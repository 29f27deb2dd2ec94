# Shared pytest configuration and fixtures for all test types
from datetime import datetime, timedelta
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker

from api.main import app
from common.db.base import Base
from packages.auth.dependencies import get_current_user
from packages.auth.models.domain.authenticated_user import AuthenticatedUser
from packages.billing.models.database import (
    FeatureEntity,
    InvoiceEntity,
    PlanEntity,
    SubscriptionEntity,
    plan_features,
)
from packages.billing.models.domain.enums import (
    BillingCycle,
    InvoicePurpose,
    InvoiceStatus,
    SubscriptionStatus,
)
from packages.billing.models.domain.invoice import Invoice
from packages.billing.models.domain.subscription import Subscription
from packages.companies.models.database.company import CompanyEntity
from packages.employees.models.database.employee import EmployeeEntity

# Test database URL
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

FEATURES = [
    ("attendance", "Attendance"),
    ("leave", "Leave Management"),
    ("payroll", "Payroll"),
    ("invitation", "Employee Invitation"),
    ("schedule", "Work Schedule"),
    ("report", "Reports"),
]

# id, name, price, tier_level, max_seats_included, feature codes
PLANS = [
    ("trial", "Free Trial", Decimal("0"), 0, 5, ["attendance", "leave"]),
    (
        "standard",
        "Standard",
        Decimal("12000"),
        1,
        50,
        ["attendance", "leave", "invitation", "schedule"],
    ),
    ("premium", "Premium", Decimal("15000"), 2, 200, [code for code, _ in FEATURES]),
    ("ultra", "Ultra", Decimal("20000"), 3, None, [code for code, _ in FEATURES]),
]


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create test database engine and initialize schema."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_connection(test_engine):
    """Create test connection with outer transaction for rollback isolation."""
    async with test_engine.connect() as connection:
        trans = await connection.begin()
        yield connection
        await trans.rollback()


@pytest_asyncio.fixture(scope="function")
async def test_session_factory(test_connection):
    """Create session factory bound to test connection.

    Using join_transaction_mode="create_savepoint" so nested transaction()
    calls create savepoints instead of real nested transactions.
    """
    return async_sessionmaker(
        bind=test_connection,
        class_=AsyncSession,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )


@pytest_asyncio.fixture(scope="function")
async def test_db(test_session_factory):
    """Create a test database session."""
    async with test_session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function", autouse=True)
async def patch_lazy_sessions(test_session_factory, monkeypatch):
    """
    Patch session factories to use test database.

    This allows real transaction() and get_session() to run with proper
    commit/rollback/ContextVar semantics while using the test database.
    """
    monkeypatch.setattr("common.db.scoped.AsyncSessionLocal", test_session_factory)
    monkeypatch.setattr(
        "common.db.scoped.AsyncSessionLocalReadonly", test_session_factory
    )


@pytest.fixture
def test_user(sample_company):
    """The company owner, allowed to run billing actions."""
    return AuthenticatedUser(user_id=1, company_id=sample_company.id, role="owner")


@pytest.fixture
def member_user(sample_company):
    """A regular employee of the sample company."""
    return AuthenticatedUser(user_id=2, company_id=sample_company.id, role="member")


@pytest_asyncio.fixture(scope="function")
async def client(test_user):
    """Create a test client authenticated as the company owner."""

    def override_get_current_user():
        return test_user

    app.dependency_overrides[get_current_user] = override_get_current_user

    try:
        async with AsyncClient(
            transport=ASGITransport(app=app), base_url="http://test"
        ) as ac:
            yield ac
    finally:
        app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def anonymous_client():
    """Create a test client without any auth override."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture(scope="function")
async def catalog(test_db: AsyncSession):
    """Seed the feature and plan catalog."""
    for code, name in FEATURES:
        test_db.add(FeatureEntity(code=code, name=name))
    for plan_id, name, price, tier_level, max_seats, _ in PLANS:
        test_db.add(
            PlanEntity(
                id=plan_id,
                name=name,
                price=price,
                tier_level=tier_level,
                max_seats_included=max_seats,
                active=True,
            )
        )
    await test_db.flush()

    await test_db.execute(
        insert(plan_features),
        [
            {"plan_id": plan_id, "feature_code": code, "position": position}
            for plan_id, _, _, _, _, codes in PLANS
            for position, code in enumerate(codes)
        ],
    )
    await test_db.commit()
    return {plan_id: codes for plan_id, _, _, _, _, codes in PLANS}


@pytest_asyncio.fixture(scope="function")
async def sample_company(test_db: AsyncSession):
    """Create a sample company for testing."""
    company = CompanyEntity(name="Acme Corp", billing_email="billing@acme.test")
    test_db.add(company)
    await test_db.commit()
    await test_db.refresh(company)
    return company


@pytest_asyncio.fixture(scope="function")
async def second_company(test_db: AsyncSession):
    company = CompanyEntity(name="Globex", billing_email="finance@globex.test")
    test_db.add(company)
    await test_db.commit()
    await test_db.refresh(company)
    return company


@pytest.fixture
def add_employees(test_db: AsyncSession):
    """Factory: add ``count`` employees with the given status to a company."""

    async def _add(company_id: int, count: int, status: str = "active"):
        for i in range(count):
            test_db.add(
                EmployeeEntity(
                    company_id=company_id,
                    full_name=f"Employee {status} {i}",
                    employment_status=status,
                )
            )
        await test_db.commit()

    return _add


@pytest.fixture
def make_subscription(test_db: AsyncSession):
    """Factory: insert a subscription row directly."""

    async def _make(
        company_id: int,
        plan_id: str = "standard",
        status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
        max_seats: int = 10,
        period_start: datetime = None,
        period_end: datetime = None,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
        **fields,
    ) -> Subscription:
        now = datetime.utcnow()
        entity = SubscriptionEntity(
            company_id=company_id,
            plan_id=plan_id,
            status=status.value,
            billing_cycle=billing_cycle.value,
            max_seats=max_seats,
            period_start=period_start or now - timedelta(days=10),
            period_end=period_end or now + timedelta(days=20),
            **fields,
        )
        test_db.add(entity)
        await test_db.commit()
        await test_db.refresh(entity)
        return Subscription.model_validate(entity)

    return _make


@pytest.fixture
def make_invoice(test_db: AsyncSession):
    """Factory: insert an invoice row directly, as if the provider had opened it."""

    async def _make(
        company_id: int,
        subscription_id: int = None,
        purpose: InvoicePurpose = InvoicePurpose.CHECKOUT,
        status: InvoiceStatus = InvoiceStatus.PENDING,
        plan_id: str = "standard",
        plan_name: str = "Standard",
        seat_count: int = 10,
        price_per_seat: Decimal = Decimal("12000"),
        amount: Decimal = None,
        period_start: datetime = None,
        period_end: datetime = None,
        provider_invoice_id: str = None,
        created_at: datetime = None,
        billing_cycle: BillingCycle = BillingCycle.MONTHLY,
    ) -> Invoice:
        now = datetime.utcnow()
        entity = InvoiceEntity(
            company_id=company_id,
            subscription_id=subscription_id,
            provider_invoice_id=provider_invoice_id,
            provider_invoice_url=(
                f"https://checkout.xendit.test/{provider_invoice_id}"
                if provider_invoice_id
                else None
            ),
            status=status.value,
            purpose=purpose.value,
            amount=amount or price_per_seat * seat_count,
            description=f"HRIS {plan_name} Plan - {seat_count} seats",
            plan_id=plan_id,
            plan_name=plan_name,
            price_per_seat=price_per_seat,
            seat_count=seat_count,
            billing_cycle=billing_cycle.value,
            period_start=period_start or now,
            period_end=period_end or now + timedelta(days=30),
            created_at=created_at or now,
            updated_at=created_at or now,
        )
        test_db.add(entity)
        await test_db.commit()
        await test_db.refresh(entity)
        return Invoice.model_validate(entity)

    return _make


@pytest_asyncio.fixture(scope="function")
async def active_subscription(catalog, sample_company, make_subscription):
    """Sample company on the standard plan, 10 seats, 20 days left in the period."""
    return await make_subscription(sample_company.id)


@pytest_asyncio.fixture(scope="function")
async def trial_subscription(catalog, sample_company, make_subscription):
    now = datetime.utcnow()
    return await make_subscription(
        sample_company.id,
        plan_id="trial",
        status=SubscriptionStatus.TRIAL,
        max_seats=5,
        period_start=now - timedelta(days=4),
        period_end=now + timedelta(days=10),
        trial_ends_at=now + timedelta(days=10),
    )
