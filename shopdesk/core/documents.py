"""
Document Store
==============

A small document database on top of Flask-SQLAlchemy.

Documents are JSON mappings addressed by a collection path (``orders``,
``users/u1/orders``) and an id. The store offers single document reads and
writes, collection queries, atomic multi-document batches and snapshot
listeners that are notified after every committed change to their
collection.

Usage:
    store = DocumentStore(db)
    doc = store.add('productos', {'name': 'Mug'})

    with store.batch() as batch:
        batch.update('orders', 'ord1', {'status': 'enviado'})
        batch.update('users/u1/orders', 'ord1', {'status': 'enviado'})

    sub = store.on_snapshot('orders', render, on_error=show_error)
    sub.cancel()
"""

import copy
import logging
import secrets
import threading
from datetime import datetime, timezone

from flask import has_app_context
from sqlalchemy.exc import SQLAlchemyError

from .database import DocumentRecord, utcnow
from .errors import (
    DependencyUnavailable,
    DocumentNotFound,
    OrderingUnsupported,
    RemoteOperationFailure,
)
from .logging_service import LoggingService

logger = logging.getLogger(__name__)

# Orderings the store applies itself; anything else is the caller's job
CREATE_TIME = '__create_time__'
UPDATE_TIME = '__update_time__'
_ORDER_COLUMNS = {
    CREATE_TIME: DocumentRecord.created_at,
    UPDATE_TIME: DocumentRecord.updated_at,
}


def new_document_id():
    """20 character random id, same length as hosted store auto-ids"""
    return secrets.token_hex(10)


class Document:
    """Detached copy of a stored document"""

    __slots__ = ('collection', 'id', 'data', 'create_time', 'update_time')

    def __init__(self, collection, doc_id, data, create_time=None, update_time=None):
        self.collection = collection
        self.id = doc_id
        self.data = data
        self.create_time = create_time
        self.update_time = update_time

    @classmethod
    def from_record(cls, record):
        return cls(
            record.collection,
            record.doc_id,
            copy.deepcopy(record.data or {}),
            record.created_at.replace(tzinfo=timezone.utc) if record.created_at else None,
            record.updated_at.replace(tzinfo=timezone.utc) if record.updated_at else None,
        )

    def __repr__(self):
        return f"<Document {self.collection}/{self.id}>"


class Snapshot:
    """Point-in-time view of a collection query"""

    def __init__(self, collection, documents):
        self.collection = collection
        self.documents = documents
        self.read_time = datetime.now(timezone.utc)

    def __len__(self):
        return len(self.documents)

    def __iter__(self):
        return iter(self.documents)


class Subscription:
    """Cancellable handle for a snapshot listener.

    Delivery and cancel() share a re-entrant lock: cancel() waits for a
    callback already running on another thread, and once it returns no
    callback fires again.
    """

    def __init__(self, store, collection, callback, on_error=None,
                 order_by=None, descending=False):
        self.store = store
        self.collection = collection
        self.callback = callback
        self.on_error = on_error
        self.order_by = order_by
        self.descending = descending
        self.active = True
        self._lock = threading.RLock()

    def deliver(self, snapshot):
        with self._lock:
            if not self.active:
                return
            try:
                self.callback(snapshot)
            except Exception as e:
                logger.exception(f"Snapshot callback on {self.collection} raised")
                self.fail(e)

    def fail(self, error):
        with self._lock:
            if not self.active:
                return
            if self.on_error is None:
                logger.error(f"Unhandled snapshot error on {self.collection}: {error}")
                return
            try:
                self.on_error(error)
            except Exception:
                logger.exception(f"Snapshot error handler on {self.collection} raised")

    def cancel(self):
        with self._lock:
            if not self.active:
                return
            self.active = False
        self.store._remove_subscription(self)

    # Lets the handle be used directly as an unsubscribe function
    __call__ = cancel


class WriteBatch:
    """Set, update and delete operations committed as one transaction"""

    def __init__(self, store):
        self.store = store
        self._ops = []
        self.committed = False

    def set(self, collection, doc_id, data, merge=False):
        self._ops.append(('set', collection, doc_id, dict(data), merge))
        return self

    def update(self, collection, doc_id, fields):
        self._ops.append(('update', collection, doc_id, dict(fields), False))
        return self

    def delete(self, collection, doc_id):
        self._ops.append(('delete', collection, doc_id, None, False))
        return self

    def __len__(self):
        return len(self._ops)

    def commit(self):
        if self.committed:
            raise RuntimeError("Batch already committed")
        session = self.store._session()
        touched = set()
        try:
            for op, collection, doc_id, data, merge in self._ops:
                if op == 'set':
                    self.store._apply_set(session, collection, doc_id, data, merge)
                elif op == 'update':
                    self.store._apply_update(session, collection, doc_id, data)
                else:
                    self.store._apply_delete(session, collection, doc_id)
                touched.add(collection)
            session.commit()
        except DocumentNotFound:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            raise RemoteOperationFailure("Batch write failed", cause=e) from e
        except Exception:
            session.rollback()
            raise
        self.committed = True
        self.store._notify(touched)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.commit()
        return False


class DocumentStore:
    """Document database backed by the documents table"""

    def __init__(self, database):
        self._db = database
        self._listeners = {}
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _session(self):
        if not has_app_context():
            raise DependencyUnavailable("Document store used outside of an application context")
        return self._db.session

    @staticmethod
    def _record(session, collection, doc_id):
        return session.get(DocumentRecord, (collection, doc_id))

    def _apply_set(self, session, collection, doc_id, data, merge):
        record = self._record(session, collection, doc_id)
        if record is None:
            record = DocumentRecord(collection=collection, doc_id=doc_id, data=data)
            session.add(record)
        elif merge:
            record.data = {**(record.data or {}), **data}
            record.updated_at = utcnow()
        else:
            record.data = data
            record.updated_at = utcnow()
        return record

    def _apply_update(self, session, collection, doc_id, fields):
        record = self._record(session, collection, doc_id)
        if record is None:
            raise DocumentNotFound(collection, doc_id)
        record.data = {**(record.data or {}), **fields}
        record.updated_at = utcnow()
        return record

    def _apply_delete(self, session, collection, doc_id):
        record = self._record(session, collection, doc_id)
        if record is None:
            return False
        session.delete(record)
        return True

    def _write(self, apply, collection, *args):
        session = self._session()
        try:
            result = apply(session, collection, *args)
            session.commit()
        except DocumentNotFound:
            session.rollback()
            raise
        except SQLAlchemyError as e:
            session.rollback()
            raise RemoteOperationFailure(f"Write to {collection} failed", cause=e) from e
        except Exception:
            session.rollback()
            raise
        self._notify({collection})
        return result

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, collection, doc_id):
        """Single document, or None"""
        session = self._session()
        try:
            record = self._record(session, collection, doc_id)
        except SQLAlchemyError as e:
            raise RemoteOperationFailure(f"Read of {collection}/{doc_id} failed", cause=e) from e
        return Document.from_record(record) if record is not None else None

    def query(self, collection, order_by=None, descending=False, limit=None):
        """All documents of a collection.

        order_by accepts CREATE_TIME or UPDATE_TIME; any other value raises
        OrderingUnsupported and the caller must sort itself.
        """
        session = self._session()
        if order_by is None:
            order_clause = DocumentRecord.doc_id.asc()
        elif order_by in _ORDER_COLUMNS:
            column = _ORDER_COLUMNS[order_by]
            order_clause = column.desc() if descending else column.asc()
        else:
            raise OrderingUnsupported(f"Store cannot order {collection} by '{order_by}'")

        try:
            stmt = (
                session.query(DocumentRecord)
                .filter(DocumentRecord.collection == collection)
                .order_by(order_clause, DocumentRecord.doc_id.asc())
            )
            if limit:
                stmt = stmt.limit(limit)
            return [Document.from_record(r) for r in stmt.all()]
        except SQLAlchemyError as e:
            raise RemoteOperationFailure(f"Query of {collection} failed", cause=e) from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def add(self, collection, data, doc_id=None):
        doc_id = doc_id or new_document_id()
        record = self._write(self._apply_set, collection, doc_id, dict(data), False)
        return Document.from_record(record)

    def set(self, collection, doc_id, data, merge=False):
        record = self._write(self._apply_set, collection, doc_id, dict(data), merge)
        return Document.from_record(record)

    def update(self, collection, doc_id, fields):
        """Merge fields into an existing document; DocumentNotFound if absent"""
        record = self._write(self._apply_update, collection, doc_id, dict(fields))
        return Document.from_record(record)

    def delete(self, collection, doc_id):
        """Returns False when there was nothing to delete"""
        return self._write(self._apply_delete, collection, doc_id)

    def batch(self):
        return WriteBatch(self)

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def on_snapshot(self, collection, callback, on_error=None, order_by=None, descending=False):
        """Subscribe to a collection.

        The current snapshot is delivered before this returns; later ones
        follow every committed write to the collection. Ordering problems
        are raised here rather than sent to on_error, so the caller can
        fall back before anything is registered.
        """
        if order_by is not None and order_by not in _ORDER_COLUMNS:
            raise OrderingUnsupported(f"Store cannot order {collection} by '{order_by}'")

        subscription = Subscription(self, collection, callback, on_error, order_by, descending)
        with self._lock:
            self._listeners.setdefault(collection, []).append(subscription)

        LoggingService.debug('sync', f"Snapshot listener attached to {collection}")
        self._dispatch(subscription)
        return subscription

    def listener_count(self, collection=None):
        with self._lock:
            if collection is not None:
                return len(self._listeners.get(collection, []))
            return sum(len(subs) for subs in self._listeners.values())

    def _remove_subscription(self, subscription):
        with self._lock:
            subs = self._listeners.get(subscription.collection, [])
            if subscription in subs:
                subs.remove(subscription)
            if not subs:
                self._listeners.pop(subscription.collection, None)
        LoggingService.debug('sync', f"Snapshot listener detached from {subscription.collection}")

    def _dispatch(self, subscription):
        if not subscription.active:
            return
        try:
            documents = self.query(
                subscription.collection,
                order_by=subscription.order_by,
                descending=subscription.descending,
            )
        except Exception as e:
            subscription.fail(e)
            return
        subscription.deliver(Snapshot(subscription.collection, documents))

    def _notify(self, collections):
        with self._lock:
            targets = [sub for c in collections for sub in self._listeners.get(c, [])]
        for subscription in targets:
            self._dispatch(subscription)
