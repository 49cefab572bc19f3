from functools import wraps

from flask import current_app, session

from ...core.errors import DependencyUnavailable
from .gate import GateDecision, GateState, UNAUTHENTICATED, require_admin
from .identity import Principal


def get_gate():
    extension = current_app.extensions.get('shopdesk')
    if extension is None or extension.gate is None:
        raise DependencyUnavailable("Session gate is not initialised")
    return extension.gate


def remember_decision(decision):
    """Store a gate decision in the Flask session"""
    session.clear()
    if decision.principal is None or decision.signed_out:
        return
    session['admin_id'] = decision.principal.uid
    session['admin_email'] = decision.principal.email
    session['is_admin'] = decision.is_admin


def current_decision():
    """Gate decision for the signed-in session"""
    uid = session.get('admin_id')
    if not uid:
        return UNAUTHENTICATED
    principal = Principal(uid, session.get('admin_email'))
    if session.get('is_admin'):
        return GateDecision(GateState.AUTHENTICATED_ADMIN, principal)
    return GateDecision(GateState.AUTHENTICATED_NON_ADMIN, principal)


def admin_required(f):
    """Decorator to require an admin session; passes the decision as `actor`.

    Admin status is looked up again on every request, so a revoked claim
    ends the session at once.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        decision = current_decision()
        if decision.is_admin:
            decision = get_gate().revalidate(decision)
            if decision.signed_out:
                remember_decision(decision)
        actor = require_admin(decision)
        return f(*args, actor=actor, **kwargs)
    return decorated_function
