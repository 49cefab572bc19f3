r"""
Order Status
============

The closed set of order statuses, the decoder every read path uses to
repair historically malformed stored values, and the lifecycle rules.

Lifecycle:

    pendiente -> procesando -> enviado -> entregado
         \____________\____________\______-> cancelado

Forward jumps are allowed, moving back is not, and nothing leaves
``entregado`` or ``cancelado``.
"""

import enum
import logging

from ...core.errors import DataShapeError, InvalidTransition, ValidationError
from ...core.logging_service import LoggingService

logger = logging.getLogger(__name__)


class OrderStatus(str, enum.Enum):
    PENDING = 'pendiente'
    PROCESSING = 'procesando'
    SHIPPED = 'enviado'
    DELIVERED = 'entregado'
    CANCELED = 'cancelado'
    # Read-repair marker, never written
    UNKNOWN = 'unknown'

    def __str__(self):
        return self.value

    @property
    def is_terminal(self):
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELED)

    @property
    def label(self):
        return STATUS_LABELS[self]

    @property
    def badge(self):
        if self is OrderStatus.DELIVERED:
            return 'success'
        if self is OrderStatus.CANCELED:
            return 'danger'
        if self is OrderStatus.UNKNOWN:
            return 'invalid'
        return 'warning'


STATUS_LABELS = {
    OrderStatus.PENDING: 'Pendiente',
    OrderStatus.PROCESSING: 'Procesando',
    OrderStatus.SHIPPED: 'Enviado',
    OrderStatus.DELIVERED: 'Entregado',
    OrderStatus.CANCELED: 'Cancelado',
    OrderStatus.UNKNOWN: 'Estado Inválido',
}

# Values an admin can pick, in lifecycle order
SELECTABLE_STATUSES = [
    OrderStatus.PENDING,
    OrderStatus.PROCESSING,
    OrderStatus.SHIPPED,
    OrderStatus.DELIVERED,
    OrderStatus.CANCELED,
]

FORWARD_PATH = SELECTABLE_STATUSES[:4]

# Spellings written by other storefront revisions
_ALIASES = {
    'pending': OrderStatus.PENDING,
    'processing': OrderStatus.PROCESSING,
    'shipped': OrderStatus.SHIPPED,
    'delivered': OrderStatus.DELIVERED,
    'canceled': OrderStatus.CANCELED,
    'cancelled': OrderStatus.CANCELED,
}

_LOOKUP = {status.value: status for status in OrderStatus}
_LOOKUP.update(_ALIASES)

# Keys under which a structured status value has been stored
WRAPPER_KEYS = ('status', 'estado', 'value')


def _from_string(value):
    status = _LOOKUP.get(value.strip().lower())
    if status is None:
        raise DataShapeError(f"Unrecognised status string {value!r}")
    return status


def _decode(raw):
    if isinstance(raw, OrderStatus):
        return raw
    if isinstance(raw, str):
        return _from_string(raw)
    if isinstance(raw, dict):
        for key in WRAPPER_KEYS:
            if isinstance(raw.get(key), str):
                try:
                    return _from_string(raw[key])
                except DataShapeError:
                    continue
        # Keys are themselves candidate statuses, e.g. {"pendiente": true}
        flagged = [key for key, value in raw.items() if isinstance(key, str) and value]
        for key in flagged:
            try:
                return _from_string(key)
            except DataShapeError:
                continue
    raise DataShapeError(f"Unreadable status value {raw!r}")


def decode_status(raw, record_id=None):
    """Stored status value to OrderStatus; never raises.

    Anything that cannot be read becomes OrderStatus.UNKNOWN. Decoding a
    decoded value returns it unchanged.
    """
    try:
        return _decode(raw)
    except DataShapeError as e:
        LoggingService.warning('orders', "Status normalization fell back to unknown",
                               {'order_id': record_id, 'raw': repr(raw), 'reason': str(e)})
        return OrderStatus.UNKNOWN


def parse_status(value):
    """Strict parse of a requested new status; raises ValidationError"""
    try:
        status = _decode(value) if isinstance(value, (str, OrderStatus)) else None
    except DataShapeError:
        status = None
    if status is None or status is OrderStatus.UNKNOWN:
        raise ValidationError(
            f"Invalid status {value!r}",
            fields={'status': f"must be one of {', '.join(s.value for s in SELECTABLE_STATUSES)}"},
        )
    return status


def can_transition(current, new):
    if current is OrderStatus.UNKNOWN or current == new:
        return True
    if current.is_terminal:
        return False
    if new is OrderStatus.CANCELED:
        return True
    return FORWARD_PATH.index(new) > FORWARD_PATH.index(current)


def check_transition(current, new):
    if not can_transition(current, new):
        raise InvalidTransition(
            f"Cannot change order status from '{current.value}' to '{new.value}'",
            fields={'status': 'transition not allowed'},
        )


def allowed_transitions(current):
    return [status for status in SELECTABLE_STATUSES if can_transition(current, status)]
