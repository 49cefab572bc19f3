"""
ShopDesk - A Flask Back Office for Small Stores
===============================================

A modular Flask admin back office with:
- Admin session gate backed by an identity provider
- Order status management with per-user copy consistency
- Product catalog management with image upload
- Live collection feeds and a dashboard summary

Usage:
    from shopdesk import ShopDesk

    app = Flask(__name__)
    ShopDesk(app)
"""

__version__ = '0.1.0'

from .extension import ShopDesk

__all__ = ['ShopDesk']
