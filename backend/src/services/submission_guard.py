"""
Per-owner submission guard.

Rejects a second admission from the same owner for the same resource and
date while the first one is still being processed, e.g. a double-clicked
submit button. Different owners are never blocked by each other.
"""

import logging
import threading
from contextlib import contextmanager
from datetime import date
from typing import Generator, Set, Tuple

from core.exceptions import SubmissionInProgress

logger = logging.getLogger(__name__)

SubmissionKey = Tuple[str, str, date]


class SubmissionGuard:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._in_flight: Set[SubmissionKey] = set()

    @contextmanager
    def hold(self, key: SubmissionKey) -> Generator[None, None, None]:
        """
        Mark a submission as in flight for the duration of the block.

        Raises:
            SubmissionInProgress: If the same key is already in flight
        """
        with self._lock:
            if key in self._in_flight:
                logger.info(f"Rejected concurrent submission for {key}")
                raise SubmissionInProgress()
            self._in_flight.add(key)
        try:
            yield
        finally:
            with self._lock:
                self._in_flight.discard(key)

    def is_in_flight(self, key: SubmissionKey) -> bool:
        with self._lock:
            return key in self._in_flight


submission_guard = SubmissionGuard()
