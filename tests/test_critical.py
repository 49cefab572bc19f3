"""
Critical Integration Tests for ShopDesk
=======================================

Focused tests covering the integration points most likely to break.
Run with: pytest tests/test_critical.py -v
"""

import os
import shutil
import tempfile

from flask import Flask

from shopdesk import ShopDesk
from shopdesk.core.context import get_context
from shopdesk.core.errors import NotFoundError


# ---------------------------------------------------------------------------
# 1. Framework initialisation -- ShopDesk(app) does not raise
# ---------------------------------------------------------------------------

def test_framework_initialisation(tmp_db_dir):
    """ShopDesk(app) boots without errors and stores itself on the app."""
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["SECRET_KEY"] = "test-secret"
    app.config["DB_DIR"] = tmp_db_dir

    shopdesk = ShopDesk(app)

    assert "shopdesk" in app.extensions
    assert app.extensions["shopdesk"] is shopdesk
    assert shopdesk.context is not None
    assert shopdesk.gate is not None


# ---------------------------------------------------------------------------
# 2. Config resolution -- defaults fill in, host values win
# ---------------------------------------------------------------------------

def test_config_defaults_and_overrides(tmp_db_dir):
    """Unset keys come from Config; the database lands in DB_DIR."""
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["DB_DIR"] = tmp_db_dir
    app.config["LOW_STOCK_THRESHOLD"] = 3

    ShopDesk(app)

    assert app.config["LOW_STOCK_THRESHOLD"] == 3
    assert app.config["ENFORCE_ORDER_LIFECYCLE"] is True
    assert app.config["SQLALCHEMY_DATABASE_URI"].endswith(os.path.join(tmp_db_dir, "shopdesk.db"))
    assert app.config["UPLOAD_FOLDER"] == app.static_folder
    assert app.config["SQLALCHEMY_ENGINE_OPTIONS"]["connect_args"]["timeout"] == 5.0


# ---------------------------------------------------------------------------
# 3. Database directory creation
# ---------------------------------------------------------------------------

def test_database_dir_creation():
    """The directory of the SQLite database is created on init."""
    d = tempfile.mkdtemp(prefix="shopdesk-dbtest-")
    target = os.path.join(d, "sub", "databases")

    try:
        app = Flask(__name__)
        app.config["TESTING"] = True
        app.config["DB_DIR"] = target

        ShopDesk(app)

        assert os.path.isdir(target), f"DB_DIR was not created at {target}"
        assert os.path.isfile(os.path.join(target, "shopdesk.db"))
    finally:
        shutil.rmtree(d, ignore_errors=True)


# ---------------------------------------------------------------------------
# 4. Blueprint registration
# ---------------------------------------------------------------------------

EXPECTED_MODULES = ["auth", "orders", "products", "dashboard"]


def test_all_blueprints_registered(app):
    registered = app.extensions["shopdesk"].get_registered_modules()

    for mod in EXPECTED_MODULES:
        assert mod in registered, f"Module '{mod}' was not registered. Registered: {registered}"
    assert len(registered) == len(EXPECTED_MODULES)


def test_features_can_be_disabled(tmp_db_dir):
    app = Flask(__name__)
    app.config["TESTING"] = True
    app.config["DB_DIR"] = tmp_db_dir

    ShopDesk(app, {"features": {"dashboard": False}})

    rules = [rule.rule for rule in app.url_map.iter_rules()]
    assert "/admin/api/summary" not in rules
    assert "/admin/orders/api/update-status" in rules


# ---------------------------------------------------------------------------
# 5. Admin auth guard -- unauthenticated API calls get a 401 JSON body
# ---------------------------------------------------------------------------

def test_admin_api_requires_session(client):
    for path in ("/admin/orders/api/orders", "/admin/products/api/products", "/admin/api/summary"):
        response = client.get(path)
        assert response.status_code == 401, f"{path} returned {response.status_code}"
        body = response.get_json()
        assert body == {"success": False, "error": "Authentication required"}


# ---------------------------------------------------------------------------
# 6. Error handler -- every ShopDeskError becomes the same JSON shape
# ---------------------------------------------------------------------------

def test_error_handler_shape(app, admin_client):
    response = admin_client.get("/admin/orders/api/order/does-not-exist")
    assert response.status_code == 404
    assert response.get_json() == {"success": False, "error": "Order does-not-exist not found"}

    response = admin_client.post("/admin/products/api/create", data={"name": "Mug", "price": "abc"})
    assert response.status_code == 400
    body = response.get_json()
    assert body["success"] is False
    assert body["fields"]["price"] == "must be a number"
    assert body["fields"]["description"] == "required"


def test_not_found_error_has_status():
    assert NotFoundError("x").status_code == 404


# ---------------------------------------------------------------------------
# 7. CORS -- the admin API answers the configured SPA origin
# ---------------------------------------------------------------------------

def test_cors_headers_for_admin_api(client):
    response = client.get("/admin/me", headers={"Origin": "http://localhost:5173"})
    assert response.headers.get("Access-Control-Allow-Origin") == "http://localhost:5173"


# ---------------------------------------------------------------------------
# 8. Template context -- feature flags are injected
# ---------------------------------------------------------------------------

def test_template_context_injection(app):
    with app.test_request_context("/"):
        ctx = {}
        for func in app.template_context_processors[None]:
            ctx.update(func())

        assert "shopdesk_features" in ctx
        assert ctx["shopdesk_features"]["orders"] is True


# ---------------------------------------------------------------------------
# 9. CLI -- admin bootstrap commands
# ---------------------------------------------------------------------------

def test_cli_create_admin_and_revoke(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["shopdesk", "create-admin", "boss@example.com", "Secret-123"])
    assert result.exit_code == 0, result.output
    assert "Created boss@example.com" in result.output

    result = runner.invoke(args=["shopdesk", "create-admin", "boss@example.com", "Secret-123"])
    assert result.exit_code != 0
    assert "already exists" in result.output

    result = runner.invoke(args=["shopdesk", "set-admin-claim", "boss@example.com", "false"])
    assert result.exit_code == 0, result.output

    with app.app_context():
        identity = get_context().identity
        principal = identity.find_by_email("boss@example.com")
        assert identity.get_claims(principal.uid, force_refresh=True) == {"admin": False}


# ---------------------------------------------------------------------------
# 10. Persisted logs -- LoggingService writes app_logs rows
# ---------------------------------------------------------------------------

def test_logging_service_persists_entries(app):
    from shopdesk.core.logging_service import LoggingService

    with app.app_context():
        LoggingService.info("tests", "hello from the test", {"answer": 42})
        entries = LoggingService.recent(source="tests")

    assert entries, "Expected at least one persisted entry"
    assert entries[0]["message"] == "hello from the test"
    assert entries[0]["level"] == "INFO"
    assert '"answer": 42' in entries[0]["details"]


def test_logging_can_be_disabled(app_factory):
    from shopdesk.core.logging_service import LoggingService

    app = app_factory(LOG_TO_DATABASE=False)
    with app.app_context():
        LoggingService.info("tests", "not stored")
        assert LoggingService.recent(source="tests") == []


def test_cli_prune_logs(app):
    from shopdesk.core.database import AppLog, db

    with app.app_context():
        db.session.add(AppLog(timestamp="2001-01-01T00:00:00", level="INFO", source="tests", message="old"))
        db.session.commit()

    result = app.test_cli_runner().invoke(args=["shopdesk", "prune-logs", "--days", "30"])

    assert result.exit_code == 0, result.output
    with app.app_context():
        assert AppLog.query.filter_by(message="old").count() == 0


def test_cli_grant_role(app):
    result = app.test_cli_runner().invoke(args=["shopdesk", "grant-role", "uid-7"])

    assert result.exit_code == 0, result.output
    with app.app_context():
        assert get_context().store.get("roles", "uid-7").data["admin"] is True
