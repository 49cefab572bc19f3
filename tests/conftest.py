"""
Shared fixtures for the ShopDesk test suite.

NOTE: pytest and pytest-flask are listed under extras_require["dev"] in setup.py.
Install with: pip install -e ".[dev]"
"""

import os
import shutil
import tempfile

import pytest
from flask import Flask

from shopdesk import ShopDesk
from shopdesk.core.context import get_context
from shopdesk.core.database import db
from shopdesk.modules.auth.gate import GateDecision, GateState
from shopdesk.modules.auth.identity import Principal

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "Adm1n-pass"


def make_app(db_dir, **overrides):
    """Flask app with ShopDesk initialised against a throwaway directory"""
    app = Flask(__name__, static_folder=os.path.join(db_dir, "static"))
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    app.config["DB_DIR"] = db_dir
    app.config["SQLALCHEMY_DATABASE_URI"] = "sqlite:///" + os.path.join(db_dir, "shopdesk.db")
    app.config["UPLOAD_FOLDER"] = os.path.join(db_dir, "uploads")
    app.config["UPLOAD_URL_PREFIX"] = "/static"
    app.config["STORAGE_BACKEND"] = "local"
    app.config["CORS_ORIGINS"] = "http://localhost:5173"
    app.config.update(overrides)
    ShopDesk(app)
    return app


@pytest.fixture
def tmp_db_dir():
    """Create a temporary directory for test databases, cleaned up after."""
    d = tempfile.mkdtemp(prefix="shopdesk-test-")
    yield d
    shutil.rmtree(d, ignore_errors=True)


@pytest.fixture
def app_factory(tmp_db_dir):
    """Build extra apps against the same temporary directory"""
    return lambda **overrides: make_app(tmp_db_dir, **overrides)


@pytest.fixture
def app(tmp_db_dir):
    """Fully initialised Flask app with all ShopDesk modules registered."""
    app = make_app(tmp_db_dir)
    yield app
    with app.app_context():
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def backend(app):
    """Backend context inside an application context"""
    with app.app_context():
        yield get_context()


@pytest.fixture
def store(backend):
    return backend.store


@pytest.fixture
def admin():
    return GateDecision(GateState.AUTHENTICATED_ADMIN, Principal("admin-uid", ADMIN_EMAIL))


@pytest.fixture
def non_admin():
    return GateDecision(GateState.AUTHENTICATED_NON_ADMIN, Principal("user-uid", "user@example.com"))


@pytest.fixture
def admin_client(app, client):
    """Test client signed in as an administrator"""
    with app.app_context():
        get_context().identity.create_account(ADMIN_EMAIL, ADMIN_PASSWORD, claims={"admin": True})
    response = client.post("/admin/login", json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD})
    assert response.status_code == 200, response.get_json()
    return client
