# toolbox/server/backends/tools/context.py
"""
Per-invocation call context.

Carries the caller's timeout and trace identifiers into a tool and lets the
host cancel a running invocation. Blocking work running in a worker thread
registers an interrupt callback with ``attach`` so ``cancel`` can stop it
from the event loop thread.
"""

import threading
import uuid
from typing import Callable, Optional


class InvocationCancelled(Exception):
    """Raised inside worker threads when the context was cancelled."""


class CallContext:
    def __init__(
        self,
        timeout: Optional[float] = None,
        trace_id: Optional[str] = None,
        session_id: Optional[str] = None,
    ):
        self.timeout = timeout
        self.trace_id = trace_id or str(uuid.uuid4())
        self.session_id = session_id
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._interrupt: Optional[Callable[[], None]] = None

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def cancel(self):
        """Mark the context cancelled and interrupt any attached blocking call."""
        # interrupt under the lock: detach() must not hand the connection
        # back to the pool while an interrupt for it is still pending
        with self._lock:
            self._cancelled.set()
            if self._interrupt is not None:
                self._interrupt()

    def attach(self, interrupt: Callable[[], None]):
        with self._lock:
            self._interrupt = interrupt
            # cancelled before the worker got going
            if self._cancelled.is_set():
                interrupt()

    def detach(self):
        with self._lock:
            self._interrupt = None

    def raise_if_cancelled(self):
        if self._cancelled.is_set():
            raise InvocationCancelled(f"invocation {self.trace_id} was cancelled")
