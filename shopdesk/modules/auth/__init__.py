"""
ShopDesk Auth Module

Provides admin authentication:
- Email/password sign-in against the identity provider
- Session gate deciding admin / non-admin / signed-out
- Admin guard for every management endpoint
"""

from flask import Blueprint

auth_bp = Blueprint('admin_auth', __name__, url_prefix='/admin')

from . import routes  # noqa: E402
from .gate import GateDecision, GateState, SessionGate, require_admin  # noqa: E402
from .identity import LocalIdentityProvider, Principal  # noqa: E402
from .utils import admin_required, current_decision  # noqa: E402

__all__ = [
    'auth_bp', 'GateDecision', 'GateState', 'SessionGate', 'require_admin',
    'LocalIdentityProvider', 'Principal', 'admin_required', 'current_decision',
]
