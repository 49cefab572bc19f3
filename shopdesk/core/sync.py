"""
Live Collection Sync
====================

Keeps an in-memory list consistent with a store collection and re-renders
it on every change notification.

    live = LiveCollection(store, 'orders', normalize_order,
                          order_by='created_at', on_change=render)
    live.start()
    ...
    live.stop()   # no render happens after this returns
"""

import logging
import queue
import threading

from .errors import OrderingUnsupported
from .logging_service import LoggingService
from .normalize import sort_newest_first

logger = logging.getLogger(__name__)

# Sentinel pushed into stream queues when the collection stops
_STOPPED = object()


class LiveCollection:
    """Ordered, deduplicated, normalized view of one collection.

    Args:
        store: DocumentStore to subscribe to
        collection: collection path
        normalizer: ``normalizer(doc_id, data) -> dict`` applied to every document
        order_by: ordering key; applied by the store when it can, otherwise
            items are sorted client-side by ``created_at`` newest first
        descending: direction for store-side ordering
        on_change: called with the new item list after every snapshot
        on_error: called with the exception when the subscription fails
    """

    def __init__(self, store, collection, normalizer, order_by=None, descending=True,
                 on_change=None, on_error=None):
        self.store = store
        self.collection = collection
        self.normalizer = normalizer
        self.order_by = order_by
        self.descending = descending
        self.on_change = on_change
        self.on_error = on_error

        self.items = []
        self.last_error = None
        self.loaded = False
        self.client_sorted = False
        self._subscription = None
        self._streams = []
        self._lock = threading.Lock()

    @property
    def active(self):
        return self._subscription is not None and self._subscription.active

    def start(self):
        if self.active:
            return self
        LoggingService.info('sync', f"Subscribing to {self.collection}",
                            {'order_by': self.order_by, 'descending': self.descending})
        try:
            self._subscription = self.store.on_snapshot(
                self.collection, self._handle_snapshot, self._handle_error,
                order_by=self.order_by, descending=self.descending,
            )
            self.client_sorted = False
        except OrderingUnsupported as e:
            LoggingService.info('sync', f"Falling back to client-side ordering for {self.collection}",
                                {'reason': str(e)})
            self.client_sorted = True
            self._subscription = self.store.on_snapshot(
                self.collection, self._handle_snapshot, self._handle_error,
            )
        return self

    def stop(self):
        """Unsubscribe; returns once no further callback can fire"""
        subscription, self._subscription = self._subscription, None
        if subscription is not None:
            subscription.cancel()
            LoggingService.info('sync', f"Unsubscribed from {self.collection}")
        with self._lock:
            streams, self._streams = self._streams, []
        for stream_queue in streams:
            stream_queue.put(_STOPPED)

    def __enter__(self):
        return self.start()

    def __exit__(self, exc_type, exc, tb):
        self.stop()
        return False

    def _handle_snapshot(self, snapshot):
        by_id = {}
        for document in snapshot.documents:
            # Later duplicates win but keep the first position
            by_id[document.id] = self.normalizer(document.id, document.data)
        items = list(by_id.values())
        if self.client_sorted:
            items = sort_newest_first(items)

        self.items = items
        self.loaded = True
        self.last_error = None
        LoggingService.debug('sync', f"Rendered {len(items)} items from {self.collection}")

        if self.on_change is not None:
            self.on_change(list(items))
        with self._lock:
            streams = list(self._streams)
        for stream_queue in streams:
            stream_queue.put(list(items))

    def _handle_error(self, error):
        self.last_error = error
        LoggingService.error('sync', f"Subscription to {self.collection} failed: {error}")
        if self.on_error is not None:
            self.on_error(error)

    def stream(self, timeout=None):
        """Yield the item list after every snapshot until stop() is called.

        The current list is yielded first. With a timeout, None is yielded
        whenever nothing arrived in time so callers can send keep-alives.
        """
        stream_queue = queue.Queue()
        with self._lock:
            self._streams.append(stream_queue)
        try:
            if self.loaded:
                yield list(self.items)
            while True:
                try:
                    items = stream_queue.get(timeout=timeout)
                except queue.Empty:
                    yield None
                    continue
                if items is _STOPPED:
                    return
                yield items
        finally:
            with self._lock:
                if stream_queue in self._streams:
                    self._streams.remove(stream_queue)
