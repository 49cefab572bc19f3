"""
Session Gate
============

Turns identity changes (sign-in, sign-out, token refresh) into one of
three states and tells every listener exactly once per change. Admin
status is always looked up fresh; any failure in that lookup counts as
non-admin.
"""

import enum
import logging
import threading

from ...core.errors import AuthenticationRequired, AuthorizationError
from ...core.logging_service import LoggingService

logger = logging.getLogger(__name__)


class GateState(enum.Enum):
    UNAUTHENTICATED = 'unauthenticated'
    AUTHENTICATED_NON_ADMIN = 'authenticated_non_admin'
    AUTHENTICATED_ADMIN = 'authenticated_admin'


class GateDecision:
    def __init__(self, state, principal=None, signed_out=False):
        self.state = state
        self.principal = principal
        self.signed_out = signed_out

    @property
    def is_admin(self):
        return self.state is GateState.AUTHENTICATED_ADMIN

    @property
    def uid(self):
        return self.principal.uid if self.principal else None

    def to_dict(self):
        return {
            'state': self.state.value,
            'is_admin': self.is_admin,
            'user': self.principal.to_dict() if self.principal else None,
        }

    def __repr__(self):
        return f"<GateDecision {self.state.value} {self.uid}>"


UNAUTHENTICATED = GateDecision(GateState.UNAUTHENTICATED)


def require_admin(decision):
    """Raise unless the decision grants management access"""
    if decision is None or decision.state is GateState.UNAUTHENTICATED:
        raise AuthenticationRequired("Authentication required")
    if not decision.is_admin:
        raise AuthorizationError("Administrator access required")
    return decision


class _GateListener:
    def __init__(self, gate, callback):
        self.gate = gate
        self.callback = callback
        self.active = True

    def cancel(self):
        self.active = False
        self.gate._remove_listener(self)


class SessionGate:
    """
    Args:
        identity: identity provider (sign-in, claims)
        store: document store holding role documents, needed for role_source='roles'
        role_source: 'claims' (admin custom claim) or 'roles' (roles/{uid} document)
        force_sign_out_non_admin: sign non-admin principals straight back out
        roles_collection: collection of role documents
    """

    def __init__(self, identity, store=None, role_source='claims',
                 force_sign_out_non_admin=True, roles_collection='roles'):
        self.identity = identity
        self.store = store
        self.role_source = role_source
        self.force_sign_out_non_admin = force_sign_out_non_admin
        self.roles_collection = roles_collection
        self._listeners = []
        self._lock = threading.Lock()

    def add_listener(self, callback):
        listener = _GateListener(self, callback)
        with self._lock:
            self._listeners.append(listener)
        return listener

    def _remove_listener(self, listener):
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def lookup_admin(self, principal):
        """Fresh admin lookup; False on any failure"""
        try:
            if self.role_source == 'roles':
                if self.store is None:
                    raise RuntimeError("Role lookup needs a document store")
                role = self.store.get(self.roles_collection, principal.uid)
                if role is None:
                    return False
                return role.data.get('admin') is True or role.data.get('role') == 'admin'

            claims = self.identity.get_claims(principal.uid, force_refresh=True)
            return claims.get('admin') is True
        except Exception as e:
            LoggingService.log_security_event(
                "Role lookup failed, treating principal as non-admin",
                {'uid': principal.uid, 'error': str(e)},
                user_id=principal.uid,
            )
            return False

    def handle_identity_change(self, principal):
        """Decide the gate state for a new identity and notify listeners once"""
        if principal is None:
            decision = UNAUTHENTICATED
        elif self.lookup_admin(principal):
            decision = GateDecision(GateState.AUTHENTICATED_ADMIN, principal)
        else:
            signed_out = False
            if self.force_sign_out_non_admin:
                self.identity.sign_out(principal.uid)
                signed_out = True
            decision = GateDecision(GateState.AUTHENTICATED_NON_ADMIN, principal, signed_out)
            LoggingService.log_security_event(
                "Non-admin sign-in denied",
                {'email': principal.email, 'signed_out': signed_out},
                user_id=principal.uid,
            )

        LoggingService.info('auth', f"Identity change resolved to {decision.state.value}",
                            user_id=decision.uid)
        self._notify(decision)
        return decision

    def revalidate(self, decision):
        """Fresh admin check for a session that was admin at sign-in.

        A revoked claim or role document turns the session into a signed
        out non-admin one.
        """
        if not decision.is_admin or self.lookup_admin(decision.principal):
            return decision
        self.identity.sign_out(decision.uid)
        LoggingService.log_security_event(
            "Admin access revoked during session",
            {'email': decision.principal.email},
            user_id=decision.uid,
        )
        revoked = GateDecision(GateState.AUTHENTICATED_NON_ADMIN, decision.principal, signed_out=True)
        self._notify(revoked)
        return revoked

    def _notify(self, decision):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            if not listener.active:
                continue
            try:
                listener.callback(decision)
            except Exception:
                logger.exception("Session gate listener raised")
