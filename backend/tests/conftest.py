"""
Pytest fixtures for cash desk backend tests.

Provides a controllable clock, stores wired in isolation, a full Terminal,
and a Flask app on in-memory SQLite with a test client.
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from cashdesk import create_app
from cashdesk.extensions import db
from cashdesk.models import ROLE_ADMIN
from cashdesk.services.auth_service import UserDirectory
from cashdesk.services.cart_service import CartEngine
from cashdesk.services.catalog_service import CatalogStore
from cashdesk.services.promotions_service import OfferRegistry
from cashdesk.services.sales_service import SalesLedger
from cashdesk.services.session_service import AuthManager
from cashdesk.services.terminal_service import Terminal


START = datetime(2026, 6, 15, 12, 0, 0)
PASSWORD = "1234"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = START):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        self.now = self.now + timedelta(seconds=seconds, **kwargs)
        return self.now


# =============================================================================
# STORES IN ISOLATION
# =============================================================================

@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def catalog(clock):
    return CatalogStore(clock=clock)


@pytest.fixture
def offers(clock):
    return OfferRegistry(clock=clock)


@pytest.fixture
def cart(catalog, offers):
    engine = CartEngine(catalog, offers)
    engine.set_current_user("u1")
    return engine


@pytest.fixture
def ledger(clock):
    return SalesLedger(clock=clock)


@pytest.fixture
def users():
    directory = UserDirectory(bcrypt_rounds=4)
    directory.create_user("E001", "Ana", PASSWORD, user_id="u1")
    directory.create_user("E002", "Luis", PASSWORD, user_id="u2")
    directory.create_user("ADMIN", "Admin", PASSWORD, role=ROLE_ADMIN, user_id="admin")
    return directory


@pytest.fixture
def auth(users, clock):
    return AuthManager(users, terminal_id="T001", idle_timeout_seconds=1200, clock=clock)


def add_product(catalog, code, price, stock=50, **extra):
    return catalog.add({
        "id": extra.pop("id", code.lower()),
        "code": code,
        "barcode": extra.pop("barcode", f"775{code}"),
        "description": extra.pop("description", f"Product {code}"),
        "sale_price": Decimal(price),
        "stock": stock,
        **extra,
    })


def nxm_offer(product_ids, buy=3, pay=2, **extra):
    return {
        "name": extra.pop("name", f"{buy}x{pay}"),
        "type": "nxm",
        "product_ids": list(product_ids),
        "buy_quantity": buy,
        "pay_quantity": pay,
        "start_date": "2026-01-01",
        "end_date": "2026-12-31",
        **extra,
    }


def n_plus_m_offer(product_ids, free_product_id, buy=2, free=1, **extra):
    return {
        "name": extra.pop("name", f"Buy {buy} get {free}"),
        "type": "n+m",
        "product_ids": list(product_ids),
        "buy_quantity": buy,
        "free_product_id": free_product_id,
        "free_quantity": free,
        "start_date": "2026-01-01",
        "end_date": "2026-12-31",
        **extra,
    }


# =============================================================================
# WIRED TERMINAL
# =============================================================================

@pytest.fixture
def terminal(clock):
    t = Terminal(terminal_id="T001", bcrypt_rounds=4, clock=clock)
    t.users.create_user("E001", "Ana", PASSWORD, user_id="u1")
    t.users.create_user("ADMIN", "Admin", PASSWORD, role=ROLE_ADMIN, user_id="admin")
    add_product(t.catalog, "A", "2.50", stock=20)
    add_product(t.catalog, "B", "4.20", stock=10)
    return t


# =============================================================================
# FLASK APP
# =============================================================================

@pytest.fixture
def app(clock):
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite:///:memory:",
            "BCRYPT_ROUNDS": 4,
            "AUTOSAVE_STATE": False,
        },
        clock=clock,
    )
    terminal = app.extensions["cashdesk"]
    terminal.users.create_user("E001", "Ana", PASSWORD, user_id="u1")
    terminal.users.create_user("ADMIN", "Admin", PASSWORD, role=ROLE_ADMIN, user_id="admin")
    add_product(terminal.catalog, "A", "2.50", stock=20)
    add_product(terminal.catalog, "B", "4.20", stock=10)

    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def employee_client(client):
    resp = client.post("/api/auth/login", json={"code": "E001", "password": PASSWORD})
    assert resp.status_code == 200
    return client


@pytest.fixture
def admin_client(client):
    resp = client.post("/api/auth/login", json={"code": "ADMIN", "password": PASSWORD})
    assert resp.status_code == 200
    return client
