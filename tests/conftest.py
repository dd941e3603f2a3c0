import pytest

from santaswap import create_app
from santaswap.extensions import get_engine, get_store
from santaswap.storage import DataStore


@pytest.fixture
def store(tmp_path):
    s = DataStore(tmp_path / "data")
    s.load()
    return s


@pytest.fixture
def app(tmp_path):
    return create_app({
        "TESTING": True,
        "DATA_DIR": str(tmp_path / "data"),
        "BASE_URL": "http://santa.test",
        "TIMEZONE": "UTC",
        "SECRET_KEY": None,
        "ASSIGNMENT_ENC_KEY": "",
        "RATE_LIMIT_MAX_REQUESTS": 1000,
    })


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_store(app):
    with app.app_context():
        return get_store()


@pytest.fixture
def app_engine(app):
    with app.app_context():
        return get_engine()


@pytest.fixture
def make_party(client):
    def _make(name="Office", guests=("Al", "Bo", "Cy"), **extra):
        payload = {"name": name, "guests": list(guests)}
        payload.update(extra)
        resp = client.post("/api/parties", json=payload)
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()
    return _make
