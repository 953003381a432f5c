import itertools
import logging
import threading
from contextlib import contextmanager
from typing import TYPE_CHECKING, Dict, Iterator, Tuple

from chatrelay.errors import CapacityExceeded

if TYPE_CHECKING:
    from chatrelay.node import ClientHandle

"""
registry.py — the set of connected clients, shared by every handler thread.

Rules:
- One lock guards everything. add/remove and enumeration all take it.
- Broadcast enumerates *while holding* the lock (locked_members), so a handler
  can't remove and close its handle in the middle of someone else's send.
- A handle is registered at most once. Removing an absent handle is a no-op.
- Capacity is enforced: add() past the limit raises CapacityExceeded.

Slot ids come from a counter and are never reused, so they stay meaningful for
logs even after other clients leave. Iteration order is not meaningful.
"""

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 100


class ClientRegistry:
    """Thread-safe collection of active client handles."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity < 1:
            raise ValueError("Registry capacity must be at least 1")
        self.capacity = capacity
        self._lock = threading.Lock()
        self._slots: Dict[int, "ClientHandle"] = {}
        self._slot_of: Dict["ClientHandle", int] = {}
        self._ids = itertools.count(1)

    def add(self, handle: "ClientHandle") -> int:
        """
        Register handle and return its slot id.

        Raises:
            CapacityExceeded: registry already holds `capacity` handles.
            ValueError: handle is already registered.
        """
        with self._lock:
            if handle in self._slot_of:
                raise ValueError("Client handle is already registered")
            if len(self._slots) >= self.capacity:
                raise CapacityExceeded(self.capacity)
            slot_id = next(self._ids)
            self._slots[slot_id] = handle
            self._slot_of[handle] = slot_id
            count = len(self._slots)
        logger.debug(f"Registered client in slot {slot_id} ({count}/{self.capacity})")
        return slot_id

    def remove(self, handle: "ClientHandle") -> bool:
        """Unregister handle. Returns False if it wasn't registered."""
        with self._lock:
            slot_id = self._slot_of.pop(handle, None)
            if slot_id is None:
                return False
            del self._slots[slot_id]
            count = len(self._slots)
        logger.debug(f"Released slot {slot_id} ({count}/{self.capacity})")
        return True

    @contextmanager
    def locked_members(self) -> Iterator[Tuple["ClientHandle", ...]]:
        """
        Yield the current members with the lock held for the whole block.

        Nobody can join or leave until the block exits, so keep it short and
        never call add/remove from inside it (the lock is not reentrant).
        """
        with self._lock:
            yield tuple(self._slots.values())

    def snapshot(self) -> Tuple["ClientHandle", ...]:
        """Copy of the current members. Safe to use after the call returns
        only for inspection; use locked_members() to write to them."""
        with self._lock:
            return tuple(self._slots.values())

    snapshot_for_broadcast = locked_members

    def __len__(self) -> int:
        with self._lock:
            return len(self._slots)

    def __contains__(self, handle: object) -> bool:
        with self._lock:
            return handle in self._slot_of
