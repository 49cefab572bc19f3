"""
Identity Provider
=================

Admin accounts with hashed passwords and custom claims. Claims are cached
per uid the way a token carries them; ``get_claims(uid, force_refresh=True)``
bypasses the cache and re-reads the account.
"""

import logging
import secrets
import threading

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from werkzeug.security import check_password_hash, generate_password_hash

from ...core.database import AdminAccount, utcnow
from ...core.errors import InvalidCredentials, RemoteOperationFailure, ValidationError

logger = logging.getLogger(__name__)


class Principal:
    """Signed-in identity"""

    __slots__ = ('uid', 'email')

    def __init__(self, uid, email=None):
        self.uid = uid
        self.email = email

    def to_dict(self):
        return {'uid': self.uid, 'email': self.email}

    def __eq__(self, other):
        return isinstance(other, Principal) and other.uid == self.uid

    def __hash__(self):
        return hash(self.uid)

    def __repr__(self):
        return f"<Principal {self.uid}>"


class LocalIdentityProvider:
    def __init__(self, database):
        self._db = database
        self._claims_cache = {}
        self._lock = threading.Lock()

    @staticmethod
    def _principal(account):
        return Principal(account.uid, account.email)

    def create_account(self, email, password, claims=None):
        email = (email or '').strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required")

        account = AdminAccount(
            uid=secrets.token_hex(14),
            email=email,
            password_hash=generate_password_hash(password),
            claims=dict(claims or {}),
        )
        session = self._db.session
        try:
            session.add(account)
            session.commit()
        except IntegrityError:
            session.rollback()
            raise ValidationError(f"An account for {email} already exists", fields={'email': 'taken'})
        except SQLAlchemyError as e:
            session.rollback()
            raise RemoteOperationFailure("Could not create account", cause=e) from e
        return self._principal(account)

    def sign_in(self, email, password):
        """Verify credentials; raises InvalidCredentials"""
        email = (email or '').strip().lower()
        try:
            account = AdminAccount.query.filter_by(email=email, is_active=True).first()
        except SQLAlchemyError as e:
            raise RemoteOperationFailure("Sign-in lookup failed", cause=e) from e

        if account is None or not check_password_hash(account.password_hash, password or ''):
            raise InvalidCredentials("Invalid email or password")

        account.last_login = utcnow()
        self._db.session.commit()
        return self._principal(account)

    def sign_out(self, uid):
        with self._lock:
            self._claims_cache.pop(uid, None)

    def get_principal(self, uid):
        account = AdminAccount.query.filter_by(uid=uid, is_active=True).first()
        return self._principal(account) if account else None

    def find_by_email(self, email):
        account = AdminAccount.query.filter_by(email=(email or '').strip().lower()).first()
        return self._principal(account) if account else None

    def get_claims(self, uid, force_refresh=False):
        """Custom claims for uid, from cache unless force_refresh"""
        if not force_refresh:
            with self._lock:
                if uid in self._claims_cache:
                    return dict(self._claims_cache[uid])

        try:
            account = AdminAccount.query.filter_by(uid=uid, is_active=True).first()
        except SQLAlchemyError as e:
            raise RemoteOperationFailure("Claims lookup failed", cause=e) from e
        claims = dict(account.claims or {}) if account else {}
        with self._lock:
            self._claims_cache[uid] = claims
        return dict(claims)

    def set_claims(self, uid, claims):
        """Replace the stored claims. Cached copies stay stale until a forced refresh."""
        account = AdminAccount.query.filter_by(uid=uid).first()
        if account is None:
            raise ValidationError(f"No account with uid {uid}")
        account.claims = dict(claims)
        self._db.session.commit()
