"""Pytest configuration and fixtures."""
import os
import tempfile
import uuid
from datetime import datetime
from decimal import Decimal

_TEST_DIR = tempfile.mkdtemp(prefix="catalog-jobs-tests-")

# Settings are read once at import time, so the environment must be ready first
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TEST_DIR, 'test.db')}"
os.environ["REDIS_URL"] = ""
os.environ["JWT_SECRET"] = "test-secret"
os.environ["LOG_FILE"] = ""

import jwt  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.config import get_settings  # noqa: E402
from app.database import Base, SessionLocal, engine  # noqa: E402
from app.main import app  # noqa: E402
from app.models import Category, Product  # noqa: E402


@pytest.fixture
def test_db():
    """Create the schema in the test database, drop it afterwards."""
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(test_db):
    """Session for arranging data and checking results."""
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def settings(tmp_path, monkeypatch):
    """Settings with scratch and report directories under tmp_path."""
    settings = get_settings()
    monkeypatch.setattr(settings, "upload_dir", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "reports_dir", str(tmp_path / "reports"))
    return settings


@pytest.fixture
def auth_headers():
    token = jwt.encode({"sub": "user-1", "email": "user@example.com"}, "test-secret", algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(test_db, settings):
    return TestClient(app)


@pytest.fixture
def categories(db):
    """Two categories keyed by name."""
    created = {}
    for name in ("Electronics", "Books"):
        category = Category(name=name, unique_id=str(uuid.uuid4()))
        db.add(category)
        created[name] = category
    db.commit()
    for category in created.values():
        db.refresh(category)
    return created


@pytest.fixture
def make_product(db):
    """Factory inserting a product with an explicit creation time."""

    def _make(category, name, price, created_at=None, image=""):
        created_at = created_at or datetime(2024, 1, 1, 12, 0, 0)
        product = Product(
            unique_id=str(uuid.uuid4()),
            name=name,
            price=Decimal(str(price)),
            category_id=category.id,
            image=image,
            created_at=created_at,
            updated_at=created_at,
        )
        db.add(product)
        db.commit()
        db.refresh(product)
        return product

    return _make
