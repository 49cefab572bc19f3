"""
Orders Admin Routes
===================

Order listing, detail, live updates and status management.
"""

import json

from flask import Response, current_app, jsonify, request, stream_with_context

from . import orders_bp
from ...core.context import get_context
from ...core.errors import ValidationError
from ...core.sync import LiveCollection
from ..auth.utils import admin_required
from .controller import OrderStatusController
from .models import normalize_order, order_to_json
from .status import SELECTABLE_STATUSES, allowed_transitions


def _controller():
    return OrderStatusController.from_context(get_context())


def _order_payload(order):
    payload = order_to_json(order)
    payload['allowed_statuses'] = [s.value for s in allowed_transitions(order['status'])]
    return payload


@orders_bp.route('/api/orders')
@admin_required
def api_orders(actor):
    """List orders for admin, newest first"""
    orders = _controller().list_orders()
    return jsonify({'success': True, 'orders': [_order_payload(o) for o in orders]})


@orders_bp.route('/api/order/<order_id>')
@admin_required
def api_order_details(order_id, actor):
    """Get detailed order information"""
    order = _controller().get_order(order_id)
    return jsonify({'success': True, 'order': _order_payload(order)})


@orders_bp.route('/api/statuses')
@admin_required
def api_statuses(actor):
    return jsonify({
        'success': True,
        'statuses': [{'value': s.value, 'label': s.label, 'badge': s.badge} for s in SELECTABLE_STATUSES],
    })


@orders_bp.route('/api/update-status', methods=['POST'])
@admin_required
def api_update_status(actor):
    """Change an order's status"""
    data = request.get_json(silent=True) or {}
    order_id = data.get('order_id') or data.get('orderId')
    new_status = data.get('status') or data.get('newStatus')

    if not order_id:
        raise ValidationError("Order ID required", fields={'order_id': 'required'})

    order = _controller().set_status(order_id, new_status, actor=actor)
    return jsonify({
        'success': True,
        'message': f"Order {order_id} status updated to {order['status'].value}",
        'order': _order_payload(order),
    })


@orders_bp.route('/api/stream')
@admin_required
def api_orders_stream(actor):
    """Server-Sent Events feed of the order list"""
    context = get_context()
    keepalive = current_app.config.get('STREAM_KEEPALIVE_SECONDS', 15)
    live = LiveCollection(
        context.store,
        context.setting('ORDERS_COLLECTION', 'orders'),
        normalize_order,
        order_by='created_at',
    )

    def generate():
        live.start()
        try:
            for orders in live.stream(timeout=keepalive):
                if orders is None:
                    yield ": keep-alive\n\n"
                    continue
                body = json.dumps([_order_payload(o) for o in orders], default=str)
                yield f"event: orders\ndata: {body}\n\n"
        finally:
            live.stop()

    return Response(stream_with_context(generate()), mimetype='text/event-stream')
