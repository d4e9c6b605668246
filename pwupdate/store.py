from __future__ import annotations

import threading
from typing import Iterable, Tuple

from .models import IdentityRecord


class RecordStore:
    """The loaded roster. Writers swap the whole collection; readers get a snapshot."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._records: Tuple[IdentityRecord, ...] = ()

    def replace(self, records: Iterable[IdentityRecord]) -> int:
        new = tuple(records)
        with self._lock:
            self._records = new
        return len(new)

    def snapshot(self) -> Tuple[IdentityRecord, ...]:
        with self._lock:
            return self._records
