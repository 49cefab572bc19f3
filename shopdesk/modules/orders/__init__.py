"""
Orders Admin Module
===================

Admin interface for order management.
Plugs into the admin dashboard module.

Provides:
- Order listing with live updates
- Order detail view
- Order status management with per-user copy consistency
- Read-repair of malformed stored statuses
"""

from flask import Blueprint

orders_bp = Blueprint(
    'orders_admin',
    __name__,
    url_prefix='/admin/orders'
)

from . import routes  # noqa: E402
from .controller import OrderStatusController  # noqa: E402
from .models import normalize_order  # noqa: E402
from .status import OrderStatus, decode_status  # noqa: E402

__all__ = ['orders_bp', 'OrderStatusController', 'normalize_order', 'OrderStatus', 'decode_status']
