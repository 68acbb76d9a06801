"""Per-room mutual exclusion for the booking creation path."""
from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Dict

from .errors import StoreError


class RoomLockRegistry:
    """Hands out one lock per room id so bookings for a room run one at a time.

    An entry lives only while some request holds or waits for it, so the
    registry stays as small as the number of rooms being booked right now.
    """

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        self._guard = threading.Lock()
        self._locks: Dict[int, threading.Lock] = {}
        self._users: Dict[int, int] = {}

    def _checkout(self, room_id: int) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(room_id)
            if lock is None:
                lock = self._locks[room_id] = threading.Lock()
            self._users[room_id] = self._users.get(room_id, 0) + 1
            return lock

    def _checkin(self, room_id: int) -> None:
        with self._guard:
            self._users[room_id] -= 1
            if not self._users[room_id]:
                del self._users[room_id]
                del self._locks[room_id]

    @contextmanager
    def hold(self, room_id: int) -> Iterator[None]:
        lock = self._checkout(room_id)
        try:
            if not lock.acquire(timeout=self.timeout):
                raise StoreError(f"Timed out waiting for room {room_id}")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._checkin(room_id)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)
