import os
import tempfile

os.environ.setdefault("VALUEFINDER_DB_PATH", os.path.join(tempfile.mkdtemp(prefix="valuefinder-"), "import.db"))

import pytest

import settings
import storage


@pytest.fixture
def db(monkeypatch, tmp_path):
    monkeypatch.setattr(settings, "DB_PATH", str(tmp_path / "test.db"))
    storage.init_database()
    return settings.DB_PATH


@pytest.fixture
def products(db):
    return storage.fetch_products()


@pytest.fixture
def client(db):
    from app import app

    app.config["TESTING"] = True
    with app.test_client() as test_client:
        yield test_client


@pytest.fixture
def admin_client(client):
    with client.session_transaction() as session:
        session["is_admin"] = True
    return client
