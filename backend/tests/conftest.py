import os
import sys
from decimal import Decimal

import pytest
import pytest_asyncio
import httpx
from httpx import ASGITransport

# Add parent directory to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from restopos.main import app
from restopos.db.dependencies import get_storage, create_access_token
from restopos.db.models import Category, Discount, MenuItem, ROLE_ADMIN, ROLE_WAITER
from restopos.db.user_utils import create_user
from restopos.services.notifications import NotificationHub
from restopos.storage import SQLAlchemyStorage
from restopos.utils.money import to_cents


@pytest.fixture
def storage(tmp_path):
    """SQLAlchemyStorage over a throwaway file-backed SQLite database."""
    db_path = tmp_path / "pos.db"
    storage = SQLAlchemyStorage(f"sqlite:///{db_path}", use_alembic=False)
    yield storage
    storage.close()


@pytest.fixture
def db_session(storage):
    """Plain session for arranging data and inspecting results."""
    session = storage._get_session()
    yield session
    session.close()


@pytest.fixture
def make_user(storage):
    """Factory: create a committed user and return it (detached)."""
    def _make_user(username="waiter1", role=ROLE_WAITER, password="secret123", name=None, party=None):
        with storage.transaction() as session:
            return create_user(
                session,
                name=name or username.title(),
                username=username,
                password=password,
                role=role,
                party=party
            )
    return _make_user


@pytest.fixture
def make_menu_item(storage):
    """Factory: create a committed menu item; price is a decimal string."""
    def _make_menu_item(name="Spring Rolls", price="5.99", stock=50, available=True, category=None):
        with storage.transaction() as session:
            category_id = None
            if category:
                cat = Category(name=category)
                session.add(cat)
                session.flush()
                category_id = cat.id
            item = MenuItem(
                name=name,
                price=to_cents(Decimal(price)),
                stock=stock,
                available=available,
                category_id=category_id
            )
            session.add(item)
            session.flush()
            return item
    return _make_menu_item


@pytest.fixture
def make_discount(storage):
    """Factory: value is percent for Percentage, currency for Fixed."""
    def _make_discount(name="Happy Hour", type="Percentage", value="10", active=True):
        with storage.transaction() as session:
            discount = Discount(name=name, type=type, value=to_cents(Decimal(value)), active=active)
            session.add(discount)
            session.flush()
            return discount
    return _make_discount


@pytest.fixture
def admin_user(make_user):
    return make_user(username="admin", role=ROLE_ADMIN, name="Admin User")


@pytest.fixture
def waiter_user(make_user):
    return make_user(username="waiter1", role=ROLE_WAITER, name="Wendy Waiter")


def _headers_for(user):
    token = create_access_token(data={"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(admin_user):
    return _headers_for(admin_user)


@pytest.fixture
def waiter_headers(waiter_user):
    return _headers_for(waiter_user)


@pytest.fixture
def notification_hub():
    return NotificationHub(max_queue_size=10)


@pytest_asyncio.fixture
async def client(storage, notification_hub):
    """Async HTTP client wired to the isolated storage and a fresh hub."""
    original_storage = app.state.storage
    original_hub = app.state.notifications
    original_overrides = app.dependency_overrides.copy()

    app.state.storage = storage
    app.state.notifications = notification_hub
    app.dependency_overrides[get_storage] = lambda: storage

    try:
        async with httpx.AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            yield client
    finally:
        app.state.storage = original_storage
        app.state.notifications = original_hub
        app.dependency_overrides = original_overrides
