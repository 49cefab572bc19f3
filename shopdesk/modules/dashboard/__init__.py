"""
Dashboard Module
================

Admin dashboard summary for ShopDesk:
- Product totals and low stock count
- Order totals and open order count
"""

from flask import Blueprint

# Note: Blueprint name is 'admin_dashboard' to avoid conflicts with site-specific user dashboards
dashboard_bp = Blueprint(
    'admin_dashboard',
    __name__,
    url_prefix='/admin'
)

# Import routes after blueprint is created
from . import routes  # noqa: E402
from .summary import DashboardSummary  # noqa: E402

__all__ = ['dashboard_bp', 'DashboardSummary']
