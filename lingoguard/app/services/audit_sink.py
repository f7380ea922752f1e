"""Fire-and-forget delivery of audit events to a security monitoring service.

Events are queued in memory and posted by a daemon thread, so a slow or
unreachable monitoring backend never blocks request handling.
"""

import atexit
import json
import queue
import threading
from dataclasses import asdict
from typing import TYPE_CHECKING, Optional

import httpx

from lingoguard.app.core.logging import get_logger

if TYPE_CHECKING:
    from lingoguard.app.services.audit import SecurityEvent

logger = get_logger(__name__)


class HttpAuditSink:
    """Posts audit events as JSON to a monitoring endpoint.

    Attributes:
        url: Endpoint receiving one JSON event per POST
        timeout: Per-request timeout in seconds
        max_queue_size: Events queued before new ones are dropped
    """

    def __init__(
        self,
        url: str,
        timeout: float = 2.0,
        max_queue_size: int = 1000,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._queue: queue.Queue[Optional["SecurityEvent"]] = queue.Queue(
            maxsize=max_queue_size
        )
        self._client = client or httpx.Client(timeout=timeout)
        self._thread: Optional[threading.Thread] = None
        self._closed = False
        self._lock = threading.Lock()
        self.dropped = 0

    def start(self) -> None:
        """Start the background delivery thread. Safe to call repeatedly."""
        with self._lock:
            if self._thread is not None:
                return
            self._thread = threading.Thread(
                target=self._deliver_loop, name="audit-sink", daemon=True
            )
            self._thread.start()
        atexit.register(self.close)

    def emit(self, event: "SecurityEvent") -> None:
        """Queue an event for delivery without blocking.

        If the queue is full, the event is dropped.
        """
        if self._closed:
            return
        if self._thread is None:
            self.start()
        try:
            self._queue.put_nowait(event)
        except queue.Full:
            with self._lock:
                self.dropped += 1

    def close(self, timeout: float = 5.0) -> None:
        """Deliver queued events, stop the thread and close the client."""
        if self._closed:
            return
        self._closed = True
        if self._thread is not None:
            # Blocking put: the sentinel must land even when the queue is full.
            self._queue.put(None)
            self._thread.join(timeout=timeout)
            self._thread = None
        self._client.close()

    def _deliver_loop(self) -> None:
        while True:
            event = self._queue.get()
            if event is None:
                break
            try:
                self._post(event)
            except Exception:
                # Keep the delivery thread alive whatever a single event does
                logger.exception("Unexpected error delivering audit event")

    def _post(self, event: "SecurityEvent") -> None:
        try:
            response = self._client.post(
                self.url,
                content=json.dumps(asdict(event), default=str),
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"Failed to deliver audit event {event.event}: {e}")
