"""
ShopDesk Core
=============

Core utilities and backend adapters shared by the ShopDesk modules.
"""

from .config import Config
from .context import BackendContext, get_context
from .database import db
from .documents import DocumentStore
from .logging_service import LoggingService
from .storage import create_blob_store
from .sync import LiveCollection

__all__ = [
    'Config', 'BackendContext', 'get_context', 'db', 'DocumentStore',
    'LoggingService', 'create_blob_store', 'LiveCollection',
]
