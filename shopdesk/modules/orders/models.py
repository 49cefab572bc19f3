"""
Order documents as the admin sees them.

normalize_order() is the single boundary every order read goes through.
Its output uses fixed keys, so feeding it back in gives the same result.
"""

from ...core.normalize import first_present, int_or, number_or, timestamp_or_none
from .status import OrderStatus, decode_status

STATUS_KEYS = ('status', 'estado')
OWNER_KEYS = ('userId', 'user_id')
CREATED_KEYS = ('created_at', 'fechaOrden', 'createdAt')
SHIPPING_KEYS = ('shipping', 'envio')


def status_field_of(data, default='status'):
    """Stored key holding the status, so writes go where the value lives"""
    for key in STATUS_KEYS:
        if key in data:
            return key
    return default


def normalize_item(item):
    if not isinstance(item, dict):
        return {'name': str(item), 'quantity': 1, 'price': 0.0}
    return {
        'name': str(first_present(item, 'name', 'nombre', default='')),
        'quantity': int_or(first_present(item, 'quantity', 'cantidad'), 1),
        'price': number_or(first_present(item, 'price', 'precio'), 0.0),
    }


def normalize_order(doc_id, data):
    data = data or {}
    status = decode_status(first_present(data, *STATUS_KEYS), record_id=doc_id)
    items = data.get('items')
    shipping = first_present(data, *SHIPPING_KEYS)
    owner = first_present(data, *OWNER_KEYS)

    return {
        'id': doc_id,
        'user_id': str(owner) if owner not in (None, '') else None,
        'items': [normalize_item(item) for item in items] if isinstance(items, list) else [],
        'total': number_or(data.get('total'), 0.0),
        'status': status,
        'status_valid': status is not OrderStatus.UNKNOWN,
        'status_label': status.label,
        'status_badge': status.badge,
        'created_at': timestamp_or_none(first_present(data, *CREATED_KEYS)),
        'shipping': dict(shipping) if isinstance(shipping, dict) else None,
    }


def summarize_items(order):
    """'Mug (x2), Tee' style line for list views"""
    parts = []
    for item in order['items']:
        text = item['name']
        if item['quantity'] > 1:
            text += f" (x{item['quantity']})"
        parts.append(text)
    return ", ".join(parts) if parts else "Unknown"


def order_to_json(order):
    payload = dict(order)
    payload['status'] = order['status'].value
    payload['created_at'] = order['created_at'].isoformat() if order['created_at'] else None
    payload['total_display'] = f"${order['total']:.2f}"
    payload['products'] = summarize_items(order)
    return payload
