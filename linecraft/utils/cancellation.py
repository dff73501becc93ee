from __future__ import annotations

import threading
import time
from typing import Any, Callable, Dict, Optional, TypeVar

T = TypeVar("T")

DEFAULT_POLL_INTERVAL = 0.05


class PipelineCancelled(Exception):
    """Raised when the caller cancels a pipeline run."""


class ServiceTimeout(RuntimeError):
    """Raised when a collaborator call exceeds its deadline."""


class CancellationToken:
    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    def cancel(self, reason: str = "Cancelled by caller") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise PipelineCancelled(self.reason or "Cancelled by caller")

    def wait(self, timeout: Optional[float] = None) -> bool:
        return self._event.wait(timeout)


def call_with_deadline(
    func: Callable[[], T],
    timeout_seconds: Optional[float],
    cancel_token: Optional[CancellationToken] = None,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> T:
    """
    Run a blocking call on a daemon worker thread so the caller can enforce a
    timeout and observe cancellation while it waits. Exceptions raised by
    ``func`` propagate unchanged. A worker still blocked after a timeout or
    cancel is abandoned and never holds up interpreter exit.
    """
    if cancel_token is not None:
        cancel_token.raise_if_cancelled()

    outcome: Dict[str, Any] = {}
    finished = threading.Event()

    def _run() -> None:
        try:
            outcome["value"] = func()
        except Exception as exc:
            outcome["error"] = exc
        finally:
            finished.set()

    worker = threading.Thread(target=_run, name="linecraft-call", daemon=True)
    worker.start()
    deadline = time.monotonic() + timeout_seconds if timeout_seconds else None

    while True:
        if cancel_token is not None and cancel_token.cancelled:
            raise PipelineCancelled(cancel_token.reason or "Cancelled by caller")
        wait_for = poll_interval
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise ServiceTimeout(f"Call exceeded {timeout_seconds:.1f}s deadline")
            wait_for = min(poll_interval, remaining)
        if finished.wait(wait_for):
            break

    if "error" in outcome:
        raise outcome["error"]
    return outcome["value"]
