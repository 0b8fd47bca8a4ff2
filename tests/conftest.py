import pytest

from config import TestConfig
from splitvault import create_app
from splitvault.extensions import db
from splitvault.services.asset_service import get_asset_port

START = 1_700_000_000


class FakeClock:
    """Stands in for time.time so tests control batch ages"""

    def __init__(self, now=START):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(clock):
    app = create_app(TestConfig)
    app.config['CLOCK'] = clock
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def year(app):
    return app.config['SECONDS_PER_YEAR']


@pytest.fixture
def port(app):
    return get_asset_port()


@pytest.fixture
def fund(app, port):
    """Mint `amount` to `address` and approve the ledger to pull it"""
    def _fund(address, amount, approve=None):
        port.mint(address, amount)
        port.approve(address, app.config['LEDGER_CUSTODY_ADDRESS'],
                     amount if approve is None else approve)
        db.session.commit()
    return _fund


@pytest.fixture
def web_app(clock):
    """An app with no context pushed, so each request gets its own"""
    app = create_app(TestConfig)
    app.config['CLOCK'] = clock
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def login(web_app):
    """Register `address` and return a logged-in test client"""
    def _login(address, name=None):
        client = web_app.test_client()
        client.post('/register', json={
            'address': address, 'name': name or address, 'password': 'secret123'
        })
        resp = client.post('/login', json={'address': address, 'password': 'secret123'})
        assert resp.status_code == 200
        return client
    return _login
