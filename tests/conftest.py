import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import approvals_api.models  # noqa: F401
from approvals_api.database import Base, get_db
from approvals_api.main import app
from approvals_api.models.procurement_request import ProcurementRequest
from approvals_api.models.user import User, UserRole
from approvals_api.services.auth_service import create_access_token
from approvals_api.services.role_service import Principal

ADMIN_ID = "a0000000-0000-0000-0000-000000000001"
REVIEWER_ID = "a0000000-0000-0000-0000-000000000002"
REQUESTER_ID = "a0000000-0000-0000-0000-000000000003"
OUTSIDER_ID = "a0000000-0000-0000-0000-000000000004"
PROCUREMENT_ID = "a0000000-0000-0000-0000-000000000005"

SEED_USERS = [
    (ADMIN_ID, "admin@acme.com", "Ada Admin", ["Admin"]),
    (REVIEWER_ID, "reviewer@acme.com", "Rex Reviewer", ["approver"]),
    (REQUESTER_ID, "requester@acme.com", None, ["employee"]),
    (OUTSIDER_ID, "outsider@acme.com", "Olive Outsider", ["employee"]),
    (PROCUREMENT_ID, "procurement@acme.com", "Pat Procurement", ["procurement_officer"]),
]


def _sqlite_engine(url: str):
    engine = create_async_engine(url)

    # pysqlite's implicit transactions break SAVEPOINT; take over BEGIN ourselves
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    return engine


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = _sqlite_engine(f"sqlite+aiosqlite:///{tmp_path / 'approvals.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as session:
        for user_id, email, name, roles in SEED_USERS:
            session.add(User(id=user_id, email=email, full_name=name, is_active=True))
        await session.flush()
        for user_id, _, _, roles in SEED_USERS:
            for role in roles:
                session.add(UserRole(user_id=user_id, role=role.lower()))
        session.add(ProcurementRequest(
            id="PR-1",
            request_number="PR-000001",
            title="Laptops for new hires",
            requester_id=REQUESTER_ID,
            status="submitted",
        ))
        await session.commit()
    return factory


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def admin():
    return Principal.of(ADMIN_ID, ["admin"], email="admin@acme.com")


@pytest.fixture
def reviewer():
    return Principal.of(REVIEWER_ID, ["approver"], email="reviewer@acme.com")


@pytest.fixture
def requester():
    return Principal.of(REQUESTER_ID, ["employee"], email="requester@acme.com")


@pytest.fixture
def outsider():
    return Principal.of(OUTSIDER_ID, ["employee"], email="outsider@acme.com")


@pytest_asyncio.fixture
async def client(session_factory):
    async def _override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = _override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id=user_id)}"}


async def block_updates(session, table: str) -> None:
    """Make every UPDATE on table fail inside the database."""
    await session.execute(text(
        f"CREATE TRIGGER block_{table}_updates BEFORE UPDATE ON {table} "
        "BEGIN SELECT RAISE(ABORT, 'updates blocked'); END"
    ))
