"""
Order Status Controller
=======================

Applies status changes to orders. When per-user mirroring is on, the
primary record (``orders/{id}``) and its copy under
``users/{userId}/orders/{id}`` are written in one batch, so either both
change or neither does.
"""

import logging

from ...core.errors import (
    MissingOwnerError,
    NotFoundError,
    RemoteOperationFailure,
    ShopDeskError,
)
from ...core.logging_service import LoggingService
from ...core.normalize import sort_newest_first, utc_now_iso
from ..auth.gate import require_admin
from .models import OWNER_KEYS, normalize_order, status_field_of
from .status import check_transition, parse_status

logger = logging.getLogger(__name__)


class OrderStatusController:
    """
    Args:
        store: DocumentStore holding the orders
        collection: primary orders collection
        user_orders_collection: path template of the per-user copies
        mirror_user_orders: also write the per-user copy
        enforce_lifecycle: reject backwards moves and moves out of terminal states
        status_field: key to write when a record has no status key yet
    """

    def __init__(self, store, collection='orders', user_orders_collection='users/{user_id}/orders',
                 mirror_user_orders=True, enforce_lifecycle=True, status_field='status'):
        self.store = store
        self.collection = collection
        self.user_orders_collection = user_orders_collection
        self.mirror_user_orders = mirror_user_orders
        self.enforce_lifecycle = enforce_lifecycle
        self.status_field = status_field

    @classmethod
    def from_context(cls, context):
        return cls(
            context.store,
            collection=context.setting('ORDERS_COLLECTION', 'orders'),
            user_orders_collection=context.setting('USER_ORDERS_COLLECTION', 'users/{user_id}/orders'),
            mirror_user_orders=context.setting('MIRROR_USER_ORDERS', True),
            enforce_lifecycle=context.setting('ENFORCE_ORDER_LIFECYCLE', True),
            status_field=context.setting('ORDER_STATUS_FIELD', 'status'),
        )

    def mirror_collection(self, user_id):
        return self.user_orders_collection.format(user_id=user_id)

    def list_orders(self):
        """All orders, normalized, newest first"""
        documents = self.store.query(self.collection)
        return sort_newest_first([normalize_order(d.id, d.data) for d in documents])

    def get_order(self, order_id):
        document = self.store.get(self.collection, order_id)
        if document is None:
            raise NotFoundError(f"Order {order_id} not found")
        return normalize_order(document.id, document.data)

    def get_mirror(self, order_id, user_id):
        """Per-user copy of an order, normalized, or None"""
        document = self.store.get(self.mirror_collection(user_id), order_id)
        return normalize_order(document.id, document.data) if document else None

    def set_status(self, order_id, new_status, actor):
        """Move an order to new_status.

        Raises AuthorizationError, ValidationError, InvalidTransition,
        NotFoundError, MissingOwnerError or RemoteOperationFailure. Nothing
        is written unless every check passes, and a failed batch leaves
        both copies as they were.
        """
        require_admin(actor)
        status = parse_status(new_status)

        document = self.store.get(self.collection, order_id)
        if document is None:
            raise NotFoundError(f"Order {order_id} not found")
        current = normalize_order(document.id, document.data)

        if self.enforce_lifecycle:
            check_transition(current['status'], status)

        now = utc_now_iso()
        field = status_field_of(document.data, self.status_field)
        update = {field: status.value, 'updated_at': now}

        batch = self.store.batch()
        batch.update(self.collection, order_id, update)

        mirror_path = None
        if self.mirror_user_orders:
            user_id = current['user_id']
            if not user_id:
                raise MissingOwnerError(
                    f"Order {order_id} has no {OWNER_KEYS[0]}; cannot update the customer's copy"
                )
            mirror_path = self.mirror_collection(user_id)
            # The copy may keep its status under the other key
            mirror = self.store.get(mirror_path, order_id)
            mirror_field = status_field_of(mirror.data, field) if mirror is not None else field
            batch.update(mirror_path, order_id, {mirror_field: status.value, 'updated_at': now})

        details = {
            'order_id': order_id,
            'from': current['status'].value,
            'to': status.value,
            'mirror': mirror_path,
        }
        LoggingService.info('orders', "Order status write attempted", details, user_id=actor.uid)

        try:
            batch.commit()
        except ShopDeskError as e:
            LoggingService.error('orders', f"Order status write failed: {e}", details, user_id=actor.uid)
            raise RemoteOperationFailure(
                f"Failed to update order {order_id} status: {e.message}", cause=e
            ) from e
        except Exception as e:
            LoggingService.log_error_with_traceback('orders', e, details)
            raise RemoteOperationFailure(
                f"Failed to update order {order_id} status: {e}", cause=e
            ) from e

        LoggingService.log_user_action('orders', f"status {details['from']} -> {details['to']}",
                                       user_id=actor.uid, details=details)
        return self.get_order(order_id)
