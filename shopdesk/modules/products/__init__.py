"""
Products Admin Module
=====================

Admin interface for product management.
Plugs into the admin dashboard module.

Provides:
- Product creation and editing
- Pricing and inventory validation
- Product image upload and cleanup
"""

from flask import Blueprint

products_bp = Blueprint(
    'products_admin',
    __name__,
    url_prefix='/admin/products'
)

from . import routes  # noqa: E402
from .controller import ImageUpload, ProductFormController  # noqa: E402
from .models import normalize_product, validate_product_fields  # noqa: E402

__all__ = ['products_bp', 'ImageUpload', 'ProductFormController', 'normalize_product',
           'validate_product_fields']
