import os
import tempfile
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

TEST_DATABASE_URL = os.getenv(
    "TEST_DATABASE_URL",
    "sqlite+aiosqlite:///" + os.path.join(tempfile.gettempdir(), "leadportal_test.db"),
)

# settings are read at import time
os.environ.setdefault("DATABASE_URL", TEST_DATABASE_URL)
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from leadportal.main import app  # noqa: E402
from leadportal.db.session import engine as app_engine, get_db  # noqa: E402
from leadportal.models.base import Base  # noqa: E402
from leadportal.models.affiliate import Affiliate  # noqa: E402
from leadportal.models.lead import Lead  # noqa: E402
from leadportal.models.status_history import StatusHistoryItem  # noqa: E402
from leadportal.models.user import User  # noqa: E402
from leadportal.core.enums import LeadStatus, UserRole  # noqa: E402
from leadportal.core.errors import StorageError  # noqa: E402
from leadportal.core.security import create_access_token, hash_password  # noqa: E402
from leadportal.services.storage import DocumentStore, get_document_store  # noqa: E402

ADMIN_EMAIL = "admin@company.com"
ADMIN_PASSWORD = "Admin123!"
AFFILIATE_PASSWORD = "Affiliate123!"


test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, future=True, poolclass=NullPool)

AsyncSessionTest = sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    future=True
)


async def override_get_db():
    async with AsyncSessionTest() as session:
        yield session


class InMemoryDocumentStore(DocumentStore):
    def __init__(self):
        self.objects = {}

    def put(self, key, content, content_type, original_name):
        self.objects[key] = content

    def get(self, key):
        if key not in self.objects:
            raise StorageError("Failed to read document")
        return self.objects[key]

    def delete(self, key):
        self.objects.pop(key, None)

    def signed_url(self, key, expires_in):
        return f"https://documents.test/{key}?expires={expires_in}"


class FailingDocumentStore(InMemoryDocumentStore):
    """Accepts the first ``succeed`` writes, then fails every later one."""

    def __init__(self, succeed=0):
        super().__init__()
        self.succeed = succeed

    def put(self, key, content, content_type, original_name):
        if len(self.objects) >= self.succeed:
            raise StorageError("Failed to store document")
        super().put(key, content, content_type, original_name)


@pytest.fixture
async def setup_db():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    yield

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session(setup_db):
    async with AsyncSessionTest() as session:
        yield session


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
async def test_client(setup_db, document_store):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_document_store] = lambda: document_store
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
    # pooled connections belong to this test's event loop
    await app_engine.dispose()


async def _create_user(db, name, email, password, role, affiliate_id=None):
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        affiliate_id=affiliate_id,
    )
    db.add(user)
    await db.commit()
    return user


@pytest.fixture
async def acme(db_session):
    affiliate = Affiliate(name="Acme Lending", contact_email="ops@acme.test")
    db_session.add(affiliate)
    await db_session.commit()
    return affiliate


@pytest.fixture
async def globex(db_session):
    affiliate = Affiliate(name="Globex Finance", contact_email="ops@globex.test")
    db_session.add(affiliate)
    await db_session.commit()
    return affiliate


@pytest.fixture
async def company_admin(db_session):
    return await _create_user(db_session, "Company Admin", ADMIN_EMAIL, ADMIN_PASSWORD, UserRole.COMPANY_ADMIN)


@pytest.fixture
async def affiliate_admin(db_session, acme):
    return await _create_user(
        db_session, "Acme Admin", "admin@acme.test", AFFILIATE_PASSWORD, UserRole.AFFILIATE_ADMIN, acme.id
    )


@pytest.fixture
async def affiliate_user(db_session, acme):
    return await _create_user(
        db_session, "Acme Agent", "agent@acme.test", AFFILIATE_PASSWORD, UserRole.AFFILIATE_USER, acme.id
    )


@pytest.fixture
async def other_affiliate_user(db_session, globex):
    return await _create_user(
        db_session, "Globex Agent", "agent@globex.test", AFFILIATE_PASSWORD, UserRole.AFFILIATE_USER, globex.id
    )


def token_for(user, **kwargs):
    return create_access_token(
        str(user.id),
        user.role,
        name=user.name,
        email=user.email,
        affiliate_id=user.affiliate_id,
        **kwargs
    )


def auth_headers(user):
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def admin_headers(company_admin):
    return auth_headers(company_admin)


@pytest.fixture
def affiliate_admin_headers(affiliate_admin):
    return auth_headers(affiliate_admin)


@pytest.fixture
def affiliate_headers(affiliate_user):
    return auth_headers(affiliate_user)


@pytest.fixture
def other_affiliate_headers(other_affiliate_user):
    return auth_headers(other_affiliate_user)


@pytest.fixture
def valid_lead_form():
    return {
        "name": "John Doe",
        "email": "john@example.com",
        "phone": "555-123-4567",
        "address": "1 Main St, Springfield",
        "loanAmount": "25000",
        "notes": "Referred by branch",
    }


@pytest.fixture
def lead_factory(db_session, company_admin):
    """Insert a lead directly, with control over status, affiliate and creation time."""

    async def _create_lead(
        name="Test Lead",
        status=LeadStatus.NEW,
        affiliate_id=None,
        created_at=None,
        **kwargs
    ):
        created_at = created_at or datetime.now(timezone.utc)
        kwargs.setdefault("email", name.lower().replace(" ", ".") + "@example.com")
        kwargs.setdefault("phone", "555-000-0000")
        kwargs.setdefault("loan_amount", Decimal("25000"))
        lead = Lead(
            name=name,
            status=status,
            affiliate_id=affiliate_id,
            created_by=company_admin.id,
            created_at=created_at,
            updated_at=created_at,
            **kwargs
        )
        db_session.add(lead)
        await db_session.flush()
        db_session.add(
            StatusHistoryItem(
                lead_id=lead.id,
                status=status,
                changed_by=company_admin.id,
                notes="Lead created",
                created_at=created_at,
            )
        )
        await db_session.commit()
        return lead

    return _create_lead


@pytest.fixture
def days_ago():
    def _days_ago(days):
        return datetime.now(timezone.utc) - timedelta(days=days)
    return _days_ago


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
    config.addinivalue_line(
        "markers", "auth: marks tests related to authentication"
    )
    config.addinivalue_line(
        "markers", "crud: marks tests related to lead intake and detail"
    )
    config.addinivalue_line(
        "markers", "lifecycle: marks tests related to lead status and comments"
    )
    config.addinivalue_line(
        "markers", "listing: marks tests related to lead listing and filters"
    )
    config.addinivalue_line(
        "markers", "bulk: marks tests related to CSV import and export"
    )
    config.addinivalue_line(
        "markers", "documents: marks tests related to lead documents"
    )
    config.addinivalue_line(
        "markers", "rate_limit: marks tests related to rate limiting"
    )
    config.addinivalue_line(
        "markers", "audit: marks tests related to audit logging"
    )
