"""
Admin Dashboard Routes
======================

Summary tiles for the admin landing page.
"""

from flask import jsonify

from . import dashboard_bp
from ...core.context import get_context
from ...core.logging_service import LoggingService
from ..auth.utils import admin_required
from .summary import DashboardSummary


@dashboard_bp.route('/api/summary')
@admin_required
def api_summary(actor):
    """Product and order totals"""
    with DashboardSummary.from_context(get_context()) as summary:
        data = summary.snapshot()
    return jsonify({'success': True, 'summary': data})


@dashboard_bp.route('/api/logs')
@admin_required
def api_logs(actor):
    """Most recent persisted log entries"""
    return jsonify({'success': True, 'logs': LoggingService.recent(limit=100)})
