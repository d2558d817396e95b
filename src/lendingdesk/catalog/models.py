"""In-memory models for catalog items.

An item carries its own reservation queue: an ordered list of holder ids
with a set index kept alongside for constant-time membership checks.
"""

from dataclasses import dataclass, field
from typing import Iterator, Optional


class ReservationQueue:
    """FIFO queue of holder ids waiting for an item."""

    def __init__(self, holder_ids: Optional[list[int]] = None):
        self._order: list[int] = []
        self._members: set[int] = set()
        for holder_id in holder_ids or []:
            self.push(holder_id)

    def push(self, holder_id: int) -> bool:
        """Append a holder to the back of the queue.

        Returns:
            False if the holder is already queued
        """
        if holder_id in self._members:
            return False
        self._order.append(holder_id)
        self._members.add(holder_id)
        return True

    def remove(self, holder_id: int) -> bool:
        """Remove a holder, keeping the relative order of the others."""
        if holder_id not in self._members:
            return False
        self._members.discard(holder_id)
        self._order.remove(holder_id)
        return True

    def pop(self) -> Optional[int]:
        """Dequeue and return the head, or None when empty."""
        if not self._order:
            return None
        holder_id = self._order.pop(0)
        self._members.discard(holder_id)
        return holder_id

    @property
    def head(self) -> Optional[int]:
        return self._order[0] if self._order else None

    def clear(self) -> None:
        self._order.clear()
        self._members.clear()

    def __contains__(self, holder_id: object) -> bool:
        return holder_id in self._members

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self) -> Iterator[int]:
        return iter(list(self._order))

    def __repr__(self) -> str:
        return f"<ReservationQueue({self._order})>"


@dataclass
class Item:
    """A circulating item (book)."""

    id: int
    title: str
    author: str
    publisher: str = ""
    year: int = 0
    isbn: str = ""
    available: bool = True
    reservations: ReservationQueue = field(default_factory=ReservationQueue)

    def __repr__(self) -> str:
        return f"<Item(id={self.id}, title='{self.title}')>"

    @property
    def is_reserved(self) -> bool:
        """True if anyone is waiting for this item."""
        return len(self.reservations) > 0

    @property
    def reservation_count(self) -> int:
        return len(self.reservations)

    def is_reserved_by(self, holder_id: int) -> bool:
        return holder_id in self.reservations

    def is_available_for(self, holder_id: int) -> bool:
        """Check whether a holder may take this item right now.

        An available item with a non-empty queue is held for the queue head
        only; everyone else is turned away even though the flag says available.
        """
        if not self.available:
            return False
        head = self.reservations.head
        return head is None or head == holder_id
