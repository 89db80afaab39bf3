"""Operation gate — one writer at a time, readers shut out while it runs."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class OperationGate:
    """
    Serializes ledger/filesystem writes.

    ``write()`` is exclusive: at most one backup, delete, restore or
    quicksave is in flight.  ``read()`` may be held by several rescans at
    once but never overlaps a write.  Neither context is re-entrant.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writing = False
        self._waiting_writers = 0

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._waiting_writers += 1
            try:
                self._cond.wait_for(lambda: not self._writing and self._readers == 0)
            finally:
                self._waiting_writers -= 1
            self._writing = True
        try:
            yield
        finally:
            with self._cond:
                self._writing = False
                self._cond.notify_all()

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            # Pending writers go first so a stream of rescans cannot starve them
            self._cond.wait_for(lambda: not self._writing and self._waiting_writers == 0)
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @property
    def busy(self) -> bool:
        with self._cond:
            return self._writing
