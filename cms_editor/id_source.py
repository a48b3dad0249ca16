"""
Local identifier and timestamp source.

New sub-records and activity entries need an id before the server assigns
one. Ids combine a coarse millisecond timestamp with a per-session counter,
so rapid successive calls within the same tick still get distinct values.
"""

import itertools
import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class IdentifierSource:
    """Generates session-unique ids and current timestamps."""

    def __init__(self, clock: Optional[Callable[[], datetime]] = None, start: int = 1):
        self._clock = clock or _utc_now
        self._counter = itertools.count(start)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Current time as a timezone-aware datetime."""
        return self._clock()

    def now_iso(self) -> str:
        """Current time as an ISO-8601 string (the wire format for timestamps)."""
        return self.now().isoformat()

    def new_id(self, prefix: str = "item") -> str:
        """
        Return a new local identifier.

        Args:
            prefix: Short tag describing what the id is for (``nav``, ``vp``, ``activity``)

        Returns:
            Identifier of the form ``{prefix}-{epoch_ms}-{counter}``
        """
        with self._lock:
            sequence = next(self._counter)
        epoch_ms = int(self.now().timestamp() * 1000)
        return f"{prefix}-{epoch_ms}-{sequence}"


_default_source = IdentifierSource()


def get_default_source() -> IdentifierSource:
    """Process-wide identifier source used when none is injected."""
    return _default_source
