"""
Admin Auth Routes
=================

Sign-in, sign-out and session introspection for the admin API.
"""

from flask import request, jsonify

from . import auth_bp
from ...core.context import get_context
from ...core.errors import AuthorizationError, ValidationError
from ...core.logging_service import LoggingService
from .utils import current_decision, get_gate, remember_decision


def _credentials():
    data = request.get_json(silent=True) or request.form
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        raise ValidationError("Email and password are required", fields={
            key: 'required' for key, value in (('email', email), ('password', password)) if not value
        })
    return email, password


@auth_bp.route('/login', methods=['POST'])
def login():
    """Admin login"""
    email, password = _credentials()
    principal = get_context().identity.sign_in(email, password)

    decision = get_gate().handle_identity_change(principal)
    remember_decision(decision)

    if not decision.is_admin:
        raise AuthorizationError("This account does not have administrator access")

    LoggingService.log_user_action('auth', 'login', user_id=principal.uid)
    return jsonify({'success': True, 'session': decision.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Admin logout"""
    previous = current_decision()
    if previous.principal is not None:
        get_context().identity.sign_out(previous.uid)
        LoggingService.log_user_action('auth', 'logout', user_id=previous.uid)

    decision = get_gate().handle_identity_change(None)
    remember_decision(decision)
    return jsonify({'success': True, 'session': decision.to_dict()})


@auth_bp.route('/me')
def me():
    """Current session state"""
    return jsonify({'success': True, 'session': current_decision().to_dict()})
