"""
Bounded fixed-interval polling.

GitLab deletes groups and users asynchronously, so the orchestrator
re-checks existence a limited number of times before moving on.
"""

from __future__ import annotations

import time
from typing import Callable

from tenacity import Retrying, retry_if_result, stop_after_attempt, wait_fixed


def poll_until(
    predicate: Callable[[], bool],
    max_attempts: int,
    interval: float,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """
    Call ``predicate`` until it returns True or attempts run out.

    Waits ``interval`` seconds before every attempt (no backoff), so the
    first check already gives GitLab one interval to catch up. ``sleep`` is
    injectable so tests never block.

    Returns:
        True if the predicate converged, False after exhausting attempts
    """
    if max_attempts < 1:
        return False

    sleep(interval)

    retrying = Retrying(
        stop=stop_after_attempt(max_attempts),
        wait=wait_fixed(interval),
        retry=retry_if_result(lambda converged: not converged),
        sleep=sleep,
        retry_error_callback=lambda retry_state: False,
    )
    return bool(retrying(predicate))
