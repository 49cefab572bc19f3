"""
Product documents: boundary normalization and form validation.
"""

from ...core.errors import DataShapeError, ValidationError
from ...core.normalize import (
    first_present,
    int_or,
    number_or,
    parse_bool,
    parse_int,
    parse_number,
    timestamp_or_none,
)

# Current key first, then the keys older revisions wrote
FIELD_KEYS = {
    'name': ('name', 'nombre'),
    'description': ('description', 'descripcion'),
    'price': ('price', 'precio'),
    'inventory': ('inventory', 'cantidadInventario', 'stock_quantity'),
    'category': ('category', 'categoria'),
    'image_url': ('image_url', 'imagenUrl'),
    'created_at': ('created_at', 'fechaCreacion'),
    'updated_at': ('updated_at', 'ultimaActualizacion'),
    'active': ('active', 'activo'),
}


def field_key_of(data, name):
    """Key a document already stores the field under, else the current key"""
    for key in FIELD_KEYS[name]:
        if key in (data or {}):
            return key
    return FIELD_KEYS[name][0]


def stored_fields(data, fields):
    """Rename normalized field names to the keys this document uses"""
    return {field_key_of(data, name): value for name, value in fields.items()}


def normalize_product(doc_id, data):
    data = data or {}

    def field(name, default=None):
        return first_present(data, *FIELD_KEYS[name], default=default)

    return {
        'id': doc_id,
        'name': str(field('name', '')),
        'description': str(field('description', '')),
        'price': number_or(field('price'), 0.0),
        'inventory': int_or(field('inventory'), 0),
        'category': str(field('category', '')),
        'image_url': field('image_url') or None,
        'created_at': timestamp_or_none(field('created_at')),
        'updated_at': timestamp_or_none(field('updated_at')),
        'active': parse_bool(field('active'), default=True),
    }


def product_to_json(product):
    payload = dict(product)
    for key in ('created_at', 'updated_at'):
        payload[key] = product[key].isoformat() if product[key] else None
    payload['price_display'] = f"${product['price']:.2f}"
    return payload


def validate_product_fields(fields):
    """Clean form input or raise ValidationError with a per-field map.

    Returns name, description, price (float), inventory (int), category
    and active. Nothing remote happens before this passes.
    """
    fields = fields or {}
    errors = {}
    clean = {}

    for key in ('name', 'description'):
        value = fields.get(key)
        value = value.strip() if isinstance(value, str) else ''
        if not value:
            errors[key] = 'required'
        clean[key] = value

    price = fields.get('price')
    try:
        if price is None or (isinstance(price, str) and not price.strip()):
            raise DataShapeError('required')
        clean['price'] = round(parse_number(price), 2)
        if clean['price'] < 0:
            errors['price'] = 'must not be negative'
    except DataShapeError as e:
        errors['price'] = 'required' if str(e) == 'required' else 'must be a number'

    inventory = fields.get('inventory')
    try:
        if inventory is None or (isinstance(inventory, str) and not inventory.strip()):
            raise DataShapeError('required')
        clean['inventory'] = parse_int(inventory)
        if clean['inventory'] < 0:
            errors['inventory'] = 'must not be negative'
    except DataShapeError as e:
        errors['inventory'] = 'required' if str(e) == 'required' else 'must be a whole number'

    category = fields.get('category')
    clean['category'] = category.strip() if isinstance(category, str) else ''
    clean['active'] = parse_bool(fields.get('active'), default=True)

    if errors:
        raise ValidationError("Invalid product: " + ", ".join(f"{k} {v}" for k, v in errors.items()),
                              fields=errors)
    return clean
