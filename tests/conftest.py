"""Shared test fixtures for all tests."""
import base64
import csv
import io

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base, get_db
from app.core.security import create_access_token, get_password_hash
from app.main import app
from app.middleware import limiter
from app.models import Category, Product, User
from app.staging import InMemoryBatchStore, get_batch_store


@pytest.fixture
async def engine():
    """Fresh in-memory SQLite database for each test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db(engine):
    """Session shared by the test body and every request it makes."""
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
    async with factory() as session:
        yield session


@pytest.fixture
def store():
    return InMemoryBatchStore()


@pytest.fixture
async def client(db, store):
    """HTTP client with the database and batch store swapped for test ones."""
    async def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_batch_store] = lambda: store
    limiter.enabled = False
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()
    limiter.enabled = True


async def _make_user(db, email: str, role: str) -> User:
    user = User(
        email=email,
        password_hash=get_password_hash("password123"),
        full_name=f"{role.title()} User",
        role=role,
        is_active=True,
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest.fixture
async def admin_user(db):
    return await _make_user(db, "admin@example.com", "admin")


@pytest.fixture
async def staff_user(db):
    return await _make_user(db, "staff@example.com", "staff")


@pytest.fixture
async def other_staff_user(db):
    return await _make_user(db, "staff2@example.com", "staff")


@pytest.fixture
async def customer_user(db):
    return await _make_user(db, "customer@example.com", "customer")


def auth_headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(subject=user.id)}"}


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers_for(admin_user)


@pytest.fixture
def staff_headers(staff_user):
    return auth_headers_for(staff_user)


@pytest.fixture
def customer_headers(customer_user):
    return auth_headers_for(customer_user)


@pytest.fixture
async def sample_products(db):
    """Three products in two categories."""
    db.add_all([Category(name="Groceries", name_key="groceries"), Category(name="Dairy", name_key="dairy")])
    products = [
        Product(
            sku="TEA001", barcode="8901234567890", name="Green Tea", brand="Leafy",
            category="Groceries", price=100.0, mrp=120.0, stock=5, uom="pcs",
        ),
        Product(
            sku="MILK01", barcode="8901234567891", name="Milk", brand="Cowco",
            category="Dairy", price=40.0, mrp=45.0, stock=20, uom="ltr",
        ),
        Product(
            sku="SOAP01", name="Soap", brand="Clean", content="100g",
            category="Groceries", price=30.0, mrp=35.0, stock=0, is_active=False,
        ),
    ]
    db.add_all(products)
    await db.commit()
    for product in products:
        await db.refresh(product)
    return products


def csv_text(rows: list[dict], columns: list[str] = None) -> str:
    """CSV with a header row; missing keys become blank cells."""
    columns = columns or list(dict.fromkeys(key for row in rows for key in row))
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=columns, lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({c: row.get(c, "") for c in columns})
    return buffer.getvalue()


def csv_base64(rows: list[dict], columns: list[str] = None) -> str:
    return base64.b64encode(csv_text(rows, columns).encode("utf-8")).decode("ascii")


@pytest.fixture
def make_upload():
    """Build a preview request body from a list of row dicts."""
    def _make(rows: list[dict], columns: list[str] = None, **options) -> dict:
        body = {"file_base64": csv_base64(rows, columns), "filename": "products.csv"}
        body.update(options)
        return body
    return _make


@pytest.fixture
def other_staff_headers(other_staff_user):
    return auth_headers_for(other_staff_user)
