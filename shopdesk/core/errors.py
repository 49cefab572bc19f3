"""
Error Taxonomy
==============

Every failure ShopDesk reports to a user is one of these classes. The
Flask error handler registered by the extension turns them into the
standard ``{"success": False, "error": ...}`` JSON body.
"""


class ShopDeskError(Exception):
    """Base class for errors surfaced to the admin UI"""

    status_code = 500

    def __init__(self, message, cause=None):
        super().__init__(message)
        self.message = message
        self.cause = cause

    def to_dict(self):
        payload = {'success': False, 'error': self.message}
        if self.cause is not None:
            payload['cause'] = str(self.cause)
        return payload


class ValidationError(ShopDeskError):
    """Bad input, rejected before any remote call"""

    status_code = 400

    def __init__(self, message, fields=None):
        super().__init__(message)
        self.fields = fields or {}

    def to_dict(self):
        payload = super().to_dict()
        if self.fields:
            payload['fields'] = self.fields
        return payload


class InvalidTransition(ValidationError):
    status_code = 409


class AuthorizationError(ShopDeskError):
    """Non-admin or unauthenticated access attempt"""

    status_code = 403


class AuthenticationRequired(AuthorizationError):
    status_code = 401


class InvalidCredentials(AuthorizationError):
    status_code = 401


class DependencyUnavailable(ShopDeskError):
    """A backend handle has not been initialised"""

    status_code = 503


class RemoteOperationFailure(ShopDeskError):
    """Store, storage or network failure during a read or write"""

    status_code = 502


class NotFoundError(ShopDeskError):
    status_code = 404


class DocumentNotFound(NotFoundError):
    def __init__(self, collection, doc_id):
        super().__init__(f"Document {collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class OrderingUnsupported(ShopDeskError):
    """The store cannot apply the requested ordering itself"""

    status_code = 400


class MissingOwnerError(ShopDeskError):
    """An order has no owning-user id to route its mirror write"""

    status_code = 422


class DataShapeError(ShopDeskError):
    """A stored field has an unexpected shape.

    Raised inside the normalizers only; they absorb it and fall back to a
    marker value, so it never reaches a view.
    """
