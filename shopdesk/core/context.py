"""
Backend Context
===============

The one object holding the backend handles (document store, blob store,
identity provider). It is built once by ``ShopDesk.init_app`` and kept on
``app.extensions['shopdesk']``; components receive it, or the handle they
need, explicitly.
"""

from flask import current_app

from .errors import DependencyUnavailable


class BackendContext:
    def __init__(self, store=None, blobs=None, identity=None, settings=None):
        self._store = store
        self._blobs = blobs
        self._identity = identity
        self.settings = dict(settings or {})

    @staticmethod
    def _require(handle, name):
        if handle is None:
            raise DependencyUnavailable(f"{name} is not initialised")
        return handle

    @property
    def store(self):
        return self._require(self._store, "Document store")

    @property
    def blobs(self):
        return self._require(self._blobs, "Blob storage")

    @property
    def identity(self):
        return self._require(self._identity, "Identity provider")

    def setting(self, key, default=None):
        return self.settings.get(key, default)


def get_context():
    """Context of the current Flask app"""
    extension = current_app.extensions.get('shopdesk')
    if extension is None or extension.context is None:
        raise DependencyUnavailable("ShopDesk has not been initialised on this app")
    return extension.context
