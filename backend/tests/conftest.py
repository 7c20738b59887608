"""
Pytest fixtures for the outlet operations backend tests.

Provides an in-memory application, a per-test table wipe, outlet/staff/item
factories and a test client with login helpers.

Time-dependent services take an explicit now. Tests build it with the `at`
fixture: wall-clock hours in Asia/Jakarta (UTC+7) on a fixed business day,
returned as the UTC-naive instants the services expect.
"""

from datetime import datetime, timedelta

import pytest

from app import create_app
from app.extensions import db
from app.services import inventory_service, outlet_service
from app.services.auth_service import create_staff
from app.services.session_service import CallerContext


DEFAULT_PASSWORD = "rahasia1"
BUSINESS_DAY = datetime(2026, 3, 2)
JAKARTA_OFFSET = timedelta(hours=7)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'BUSINESS_TIMEZONE': 'Asia/Jakarta',
        'REMOTE_SYNC_URL': '',
        'SYNC_IN_BACKGROUND': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Empty every table before the test."""
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    yield db.session

    db.session.rollback()


@pytest.fixture
def at():
    """at(hour, minute=0, days=0) -> UTC-naive instant of that Jakarta wall-clock time."""
    def _at(hour: int, minute: int = 0, days: int = 0) -> datetime:
        return BUSINESS_DAY + timedelta(days=days, hours=hour, minutes=minute) - JAKARTA_OFFSET
    return _at


@pytest.fixture
def make_outlet(db_session):
    def _make(name: str, timezone: str | None = "Asia/Jakarta"):
        outlet = outlet_service.create_outlet(name, code=name.split()[-1][:3].upper(), timezone=timezone)
        db_session.commit()
        return outlet
    return _make


@pytest.fixture
def make_staff(db_session):
    def _make(username: str, role: str = "CASHIER", outlets=(), *, shift_start=None, shift_end=None,
              password: str = DEFAULT_PASSWORD):
        staff = create_staff(
            username.title(),
            username,
            password,
            role,
            [o.id for o in outlets],
            shift_start_time=shift_start,
            shift_end_time=shift_end,
        )
        db_session.commit()
        return staff
    return _make


@pytest.fixture
def make_item(db_session):
    def _make(outlet, name: str, quantity=0, unit: str = "gr", **kwargs):
        item = inventory_service.create_item(outlet.id, name, unit, quantity=quantity, **kwargs)
        db_session.commit()
        return item
    return _make


@pytest.fixture
def outlet(make_outlet):
    return make_outlet("Outlet Kemang")


@pytest.fixture
def second_outlet(make_outlet):
    return make_outlet("Outlet Senopati")


@pytest.fixture
def cashier(make_staff, outlet):
    """Cashier at `outlet`, shift 08:00-16:00."""
    return make_staff("sari", "CASHIER", [outlet], shift_start="08:00", shift_end="16:00")


@pytest.fixture
def second_cashier(make_staff, second_outlet):
    return make_staff("dewi", "CASHIER", [second_outlet], shift_start="08:00", shift_end="16:00")


@pytest.fixture
def manager(make_staff, outlet, second_outlet):
    return make_staff("budi", "MANAGER", [outlet, second_outlet])


@pytest.fixture
def owner(make_staff):
    return make_staff("pemilik", "OWNER")


@pytest.fixture
def caller_for():
    """caller_for(staff, outlet) -> CallerContext the routes would build."""
    def _caller(staff, outlet) -> CallerContext:
        return CallerContext.for_staff(staff, outlet.id)
    return _caller


def get_auth_token(client, username: str, password: str = DEFAULT_PASSWORD) -> str:
    """Helper to get auth token for a staff member."""
    response = client.post('/api/auth/login', json={
        'username': username,
        'password': password
    })
    if response.status_code == 200:
        return response.json.get('token')
    return None


def auth_headers(token: str, outlet_id: int | None = None) -> dict:
    """Helper to create Authorization (and outlet selection) headers."""
    headers = {'Authorization': f'Bearer {token}'}
    if outlet_id is not None:
        headers['X-Outlet-Id'] = str(outlet_id)
    return headers


@pytest.fixture
def login(client):
    """login(staff, outlet=None) -> request headers for that staff member."""
    def _login(staff, outlet=None, password: str = DEFAULT_PASSWORD) -> dict:
        token = get_auth_token(client, staff.username, password)
        assert token, f"login failed for {staff.username}"
        return auth_headers(token, outlet.id if outlet is not None else None)
    return _login
