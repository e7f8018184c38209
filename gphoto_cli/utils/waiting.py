"""Bounded waits with timeout and cancellation."""

import queue
import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

# Granularity at which a blocked wait re-checks the cancel event.
CANCEL_CHECK_INTERVAL = 0.1


class WaitStatus(str, Enum):
    """How a bounded wait ended."""
    SUCCESS = "success"
    TIMEOUT = "timeout"
    CANCELLED = "cancelled"


@dataclass
class WaitOutcome:
    """Tagged result of :func:`wait_for`."""
    status: WaitStatus
    value: Any = None

    @property
    def ok(self) -> bool:
        return self.status is WaitStatus.SUCCESS


def wait_for(
    source: "queue.Queue[Any]",
    timeout: Optional[float],
    cancel_event: Optional[threading.Event] = None,
) -> WaitOutcome:
    """Block until ``source`` yields an item, ``timeout`` elapses or ``cancel_event`` is set.

    Args:
        source: Queue the producer hands its result through
        timeout: Maximum seconds to wait, or None to wait forever
        cancel_event: Optional event that aborts the wait when set

    Returns:
        WaitOutcome tagged SUCCESS (with the item), TIMEOUT or CANCELLED
    """
    deadline = None if timeout is None else time.monotonic() + timeout

    while True:
        if cancel_event is not None and cancel_event.is_set():
            return WaitOutcome(WaitStatus.CANCELLED)

        slice_ = CANCEL_CHECK_INTERVAL
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                return WaitOutcome(WaitStatus.TIMEOUT)
            slice_ = min(slice_, remaining)

        try:
            return WaitOutcome(WaitStatus.SUCCESS, source.get(timeout=slice_))
        except queue.Empty:
            continue


def sleep_or_cancel(seconds: float, cancel_event: Optional[threading.Event] = None) -> bool:
    """Sleep for ``seconds``; return True if ``cancel_event`` fired first."""
    if cancel_event is None:
        time.sleep(seconds)
        return False
    return cancel_event.wait(seconds)
