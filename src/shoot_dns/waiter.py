from __future__ import annotations

import time
from threading import Event
from typing import Callable, Optional

from shoot_dns.errors import ReconcileCancelled


def check_cancelled(stop_event: Optional[Event]) -> None:
    if stop_event is not None and stop_event.is_set():
        raise ReconcileCancelled("reconciliation cancelled")


def poll_until(
    condition: Callable[[], bool],
    *,
    interval: float,
    timeout: float,
    stop_event: Optional[Event] = None,
) -> bool:
    """Evaluate `condition` every `interval` seconds until it holds.

    Returns False once `timeout` seconds have elapsed without the condition
    holding. Raises ReconcileCancelled as soon as `stop_event` is set.
    """
    deadline = time.monotonic() + timeout
    stop_event = stop_event or Event()
    while True:
        check_cancelled(stop_event)
        if condition():
            return True
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            return False
        stop_event.wait(min(interval, remaining))
