"""
Order status changes: lifecycle rules, the orders + users/{uid}/orders
dual write, and what happens when one half of it cannot be written.
"""

import pytest
from sqlalchemy.exc import OperationalError

from shopdesk.core.context import get_context
from shopdesk.core.documents import DocumentStore
from shopdesk.core.errors import (
    AuthenticationRequired,
    AuthorizationError,
    InvalidTransition,
    MissingOwnerError,
    NotFoundError,
    RemoteOperationFailure,
    ValidationError,
)
from shopdesk.core.sync import LiveCollection
from shopdesk.modules.orders.controller import OrderStatusController
from shopdesk.modules.orders.models import normalize_order
from shopdesk.modules.orders.status import SELECTABLE_STATUSES, OrderStatus


def seed_order(store, order_id="ord1", status="pendiente", user_id="u1", mirror=True,
               status_key="status"):
    data = {
        "userId": user_id,
        "items": [{"name": "Mug", "quantity": 2, "price": 9.5}],
        "total": 19.0,
        status_key: status,
        "fechaOrden": {"seconds": 1700000000, "nanoseconds": 0},
    }
    if user_id is None:
        data.pop("userId")
    store.set("orders", order_id, data)
    if mirror and user_id:
        store.set(f"users/{user_id}/orders", order_id, dict(data))
    return data


@pytest.fixture
def controller(backend):
    return OrderStatusController.from_context(backend)


# ---------------------------------------------------------------------------
# 1. Dual write -- both copies change together
# ---------------------------------------------------------------------------

def test_shipping_updates_both_copies(store, controller, admin):
    seed_order(store)

    order = controller.set_status("ord1", "enviado", actor=admin)

    assert order["status"] is OrderStatus.SHIPPED
    assert store.get("orders", "ord1").data["status"] == "enviado"
    assert store.get("users/u1/orders", "ord1").data["status"] == "enviado"
    # Other fields are untouched
    assert store.get("orders", "ord1").data["total"] == 19.0


@pytest.mark.parametrize("status", SELECTABLE_STATUSES)
def test_every_status_reachable_from_pending(store, controller, admin, status):
    seed_order(store)

    controller.set_status("ord1", status.value, actor=admin)

    primary = normalize_order("ord1", store.get("orders", "ord1").data)
    mirror = controller.get_mirror("ord1", "u1")
    assert primary["status"] is status
    assert mirror["status"] is status


def test_english_alias_is_stored_as_canonical_value(store, controller, admin):
    seed_order(store)

    controller.set_status("ord1", "shipped", actor=admin)

    assert store.get("orders", "ord1").data["status"] == "enviado"


def test_write_goes_to_existing_status_key(store, controller, admin):
    seed_order(store, status_key="estado")

    controller.set_status("ord1", "procesando", actor=admin)

    data = store.get("orders", "ord1").data
    assert data["estado"] == "procesando"
    assert "status" not in data


def test_mirror_keeps_its_own_status_key(store, controller, admin):
    seed_order(store, status_key="estado", mirror=False)
    store.set("users/u1/orders", "ord1", {"userId": "u1", "status": "pendiente"})

    controller.set_status("ord1", "enviado", actor=admin)

    primary = store.get("orders", "ord1").data
    mirror = store.get("users/u1/orders", "ord1").data
    assert primary["estado"] == "enviado"
    assert "status" not in primary
    assert mirror["status"] == "enviado"
    assert "estado" not in mirror
    assert controller.get_mirror("ord1", "u1")["status"] is OrderStatus.SHIPPED


def test_update_notifies_live_view(store, controller, admin):
    seed_order(store)
    renders = []

    with LiveCollection(store, "orders", normalize_order, on_change=renders.append):
        controller.set_status("ord1", "procesando", actor=admin)

    assert renders[0][0]["status"] is OrderStatus.PENDING
    assert renders[-1][0]["status"] is OrderStatus.PROCESSING


# ---------------------------------------------------------------------------
# 2. Atomicity -- a failed half leaves both copies as they were
# ---------------------------------------------------------------------------

def test_missing_mirror_document_rolls_back(store, controller, admin):
    seed_order(store, mirror=False)

    with pytest.raises(RemoteOperationFailure) as excinfo:
        controller.set_status("ord1", "enviado", actor=admin)

    assert isinstance(excinfo.value.cause, NotFoundError)
    assert store.get("orders", "ord1").data["status"] == "pendiente"


def test_mirror_write_failure_rolls_back(store, controller, admin, monkeypatch):
    seed_order(store)
    original = DocumentStore._apply_update

    def flaky_update(self, session, collection, doc_id, fields):
        if collection.startswith("users/"):
            raise OperationalError("UPDATE documents", {}, Exception("disk I/O error"))
        return original(self, session, collection, doc_id, fields)

    monkeypatch.setattr(DocumentStore, "_apply_update", flaky_update)

    with pytest.raises(RemoteOperationFailure):
        controller.set_status("ord1", "enviado", actor=admin)

    monkeypatch.undo()
    assert store.get("orders", "ord1").data["status"] == "pendiente"
    assert store.get("users/u1/orders", "ord1").data["status"] == "pendiente"


def test_unexpected_error_leaves_nothing_pending(store, controller, admin, monkeypatch):
    seed_order(store)
    original = DocumentStore._apply_update

    def broken_update(self, session, collection, doc_id, fields):
        if collection.startswith("users/"):
            raise RuntimeError("mirror encoder crashed")
        return original(self, session, collection, doc_id, fields)

    monkeypatch.setattr(DocumentStore, "_apply_update", broken_update)

    with pytest.raises(RemoteOperationFailure) as excinfo:
        controller.set_status("ord1", "enviado", actor=admin)

    assert isinstance(excinfo.value.cause, RuntimeError)

    monkeypatch.undo()
    # The next unrelated commit must not carry the primary half with it
    store.set("audit", "a1", {"note": "later write"})
    assert store.get("orders", "ord1").data["status"] == "pendiente"
    assert store.get("users/u1/orders", "ord1").data["status"] == "pendiente"


def test_order_without_owner_is_rejected(store, controller, admin):
    seed_order(store, user_id=None)

    with pytest.raises(MissingOwnerError):
        controller.set_status("ord1", "enviado", actor=admin)

    assert store.get("orders", "ord1").data["status"] == "pendiente"


def test_owner_not_needed_without_mirroring(store, backend, admin):
    seed_order(store, user_id=None)
    controller = OrderStatusController(store, mirror_user_orders=False)

    order = controller.set_status("ord1", "enviado", actor=admin)

    assert order["status"] is OrderStatus.SHIPPED


# ---------------------------------------------------------------------------
# 3. Validation and lifecycle
# ---------------------------------------------------------------------------

@pytest.mark.parametrize("value", ["perdido", "", None, "unknown", 3])
def test_invalid_status_writes_nothing(store, controller, admin, value):
    seed_order(store)

    with pytest.raises(ValidationError) as excinfo:
        controller.set_status("ord1", value, actor=admin)

    assert "status" in excinfo.value.fields
    assert store.get("orders", "ord1").data["status"] == "pendiente"


def test_unknown_order(store, controller, admin):
    with pytest.raises(NotFoundError):
        controller.set_status("nope", "enviado", actor=admin)


def test_backwards_move_rejected(store, controller, admin):
    seed_order(store, status="enviado")

    with pytest.raises(InvalidTransition):
        controller.set_status("ord1", "pendiente", actor=admin)

    assert store.get("users/u1/orders", "ord1").data["status"] == "enviado"


@pytest.mark.parametrize("terminal", ["entregado", "cancelado"])
def test_terminal_states_are_final(store, controller, admin, terminal):
    seed_order(store, status=terminal)

    with pytest.raises(InvalidTransition):
        controller.set_status("ord1", "procesando", actor=admin)


def test_cancel_from_open_state(store, controller, admin):
    seed_order(store, status="procesando")

    order = controller.set_status("ord1", "cancelado", actor=admin)

    assert order["status"] is OrderStatus.CANCELED
    assert order["status_badge"] == "danger"


def test_lifecycle_can_be_switched_off(store, admin):
    seed_order(store, status="entregado")
    controller = OrderStatusController(store, enforce_lifecycle=False)

    order = controller.set_status("ord1", "pendiente", actor=admin)

    assert order["status"] is OrderStatus.PENDING


def test_unreadable_status_can_be_repaired(store, controller, admin):
    seed_order(store, status=42)
    assert controller.get_order("ord1")["status"] is OrderStatus.UNKNOWN

    order = controller.set_status("ord1", "procesando", actor=admin)

    assert order["status"] is OrderStatus.PROCESSING
    assert order["status_valid"] is True


# ---------------------------------------------------------------------------
# 4. Authorization
# ---------------------------------------------------------------------------

def test_non_admin_cannot_change_status(store, controller, non_admin):
    seed_order(store)

    with pytest.raises(AuthorizationError):
        controller.set_status("ord1", "enviado", actor=non_admin)

    assert store.get("orders", "ord1").data["status"] == "pendiente"


def test_anonymous_cannot_change_status(store, controller):
    seed_order(store)

    with pytest.raises(AuthenticationRequired):
        controller.set_status("ord1", "enviado", actor=None)


# ---------------------------------------------------------------------------
# 5. HTTP
# ---------------------------------------------------------------------------

def test_update_status_endpoint(app, admin_client):
    with app.app_context():
        seed_order(get_context().store)

    response = admin_client.post("/admin/orders/api/update-status",
                                 json={"orderId": "ord1", "newStatus": "procesando"})

    assert response.status_code == 200, response.get_json()
    body = response.get_json()
    assert body["success"] is True
    assert body["order"]["status"] == "procesando"
    assert "pendiente" not in body["order"]["allowed_statuses"]


def test_update_status_endpoint_rejects_backwards(app, admin_client):
    with app.app_context():
        seed_order(get_context().store, status="entregado")

    response = admin_client.post("/admin/orders/api/update-status",
                                 json={"order_id": "ord1", "status": "enviado"})

    assert response.status_code == 409
    assert response.get_json()["success"] is False


def test_orders_listing_repairs_bad_statuses(app, admin_client):
    with app.app_context():
        store = get_context().store
        seed_order(store, "a", status={"estado": "enviado"})
        seed_order(store, "b", status=["?"])

    response = admin_client.get("/admin/orders/api/orders")

    orders = {o["id"]: o for o in response.get_json()["orders"]}
    assert orders["a"]["status"] == "enviado"
    assert orders["b"]["status"] == "unknown"
    assert orders["b"]["status_label"] == "Estado Inválido"


def test_orders_stream_sends_current_list(app, admin_client):
    with app.app_context():
        seed_order(get_context().store)

    response = admin_client.get("/admin/orders/api/stream")
    assert response.mimetype == "text/event-stream"

    chunk = next(iter(response.response))
    if isinstance(chunk, bytes):
        chunk = chunk.decode()
    response.close()

    assert chunk.startswith("event: orders\ndata: ")
    assert '"id": "ord1"' in chunk
