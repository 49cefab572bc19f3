"""
Dashboard Summary
=================

Product and order totals fed by two independent live collections. Either
snapshot may arrive first; until both have, the summary says it is
incomplete instead of mixing a fresh count with a zero.
"""

import threading

from ...core.sync import LiveCollection
from ..orders.models import normalize_order
from ..orders.status import OrderStatus
from ..products.models import normalize_product

OPEN_STATUSES = (OrderStatus.PENDING, OrderStatus.PROCESSING)


class DashboardSummary:
    def __init__(self, store, products_collection='productos', orders_collection='orders',
                 low_stock_threshold=10, on_change=None):
        self.low_stock_threshold = low_stock_threshold
        self.on_change = on_change
        self._lock = threading.Lock()
        self._products = None
        self._orders = None
        self.errors = {}

        self.products = LiveCollection(
            store, products_collection, normalize_product,
            on_change=self._products_changed,
            on_error=lambda e: self._failed('products', e),
        )
        self.orders = LiveCollection(
            store, orders_collection, normalize_order,
            on_change=self._orders_changed,
            on_error=lambda e: self._failed('orders', e),
        )

    @classmethod
    def from_context(cls, context, on_change=None):
        return cls(
            context.store,
            products_collection=context.setting('PRODUCTS_COLLECTION', 'productos'),
            orders_collection=context.setting('ORDERS_COLLECTION', 'orders'),
            low_stock_threshold=context.setting('LOW_STOCK_THRESHOLD', 10),
            on_change=on_change,
        )

    def start(self):
        self.products.start()
        self.orders.start()
        return self

    def stop(self):
        self.products.stop()
        self.orders.stop()

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def _products_changed(self, products):
        with self._lock:
            self._products = {
                'total_products': len(products),
                'low_stock_products': sum(
                    1 for p in products if p['inventory'] < self.low_stock_threshold
                ),
            }
        self._emit()

    def _orders_changed(self, orders):
        with self._lock:
            self._orders = {
                'total_orders': len(orders),
                'pending_orders': sum(1 for o in orders if o['status'] in OPEN_STATUSES),
                'unknown_status_orders': sum(1 for o in orders if not o['status_valid']),
            }
        self._emit()

    def _failed(self, name, error):
        with self._lock:
            self.errors[name] = str(error)
        self._emit()

    def _emit(self):
        if self.on_change is not None:
            self.on_change(self.snapshot())

    def snapshot(self):
        with self._lock:
            products = self._products
            orders = self._orders
            errors = dict(self.errors)

        summary = {
            'total_products': 0,
            'low_stock_products': 0,
            'total_orders': 0,
            'pending_orders': 0,
            'unknown_status_orders': 0,
        }
        if products:
            summary.update(products)
        if orders:
            summary.update(orders)
        summary['complete'] = products is not None and orders is not None
        summary['errors'] = errors
        return summary
