"""Progress events from a discovery run, delivered over a thread-safe queue."""

from __future__ import annotations

import logging
import queue
import threading
from typing import Iterator, Optional

from refscout.models import ProgressEvent

logger = logging.getLogger(__name__)

_CLOSED = object()


class ProgressChannel:
    """Append-only event stream between the orchestrator and an observer.

    The orchestrator only ever calls :meth:`publish`, which never blocks, so
    a run behaves the same whether or not anything reads the channel.

    Example:
        channel = ProgressChannel()
        worker = threading.Thread(target=orchestrator.run, args=(analysis,))
        worker.start()
        for event in channel.events():
            print(event.message)
    """

    def __init__(self):
        self._queue: queue.Queue = queue.Queue()
        self._closed = threading.Event()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def publish(self, event: ProgressEvent) -> None:
        if self._closed.is_set():
            logger.debug("Dropping event on closed channel: %s", event.message)
            return
        self._queue.put(event)

    def close(self) -> None:
        """End the stream; iterators drain what is queued and then stop."""
        if not self._closed.is_set():
            self._closed.set()
            self._queue.put(_CLOSED)

    def events(self, timeout: Optional[float] = None) -> Iterator[ProgressEvent]:
        """Yield events until the channel is closed.

        Args:
            timeout: Give up after this many seconds without an event.
        """
        while True:
            try:
                item = self._queue.get(timeout=timeout)
            except queue.Empty:
                return
            if item is _CLOSED:
                return
            yield item

    def drain(self) -> list[ProgressEvent]:
        """Return every event queued so far without blocking."""
        drained = []
        while True:
            try:
                item = self._queue.get_nowait()
            except queue.Empty:
                break
            if item is _CLOSED:
                # Keep the sentinel for any live iterator
                self._queue.put(_CLOSED)
                break
            drained.append(item)
        return drained
