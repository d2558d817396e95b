"""Catalog module.

Provides functionality for:
- Adding and removing circulating items
- Title search (an empty query lists everything)
- Per-item reservation queues
"""

from .manager import Catalog
from .models import Item, ReservationQueue
from .schemas import ItemCreate

__all__ = [
    "Catalog",
    "Item",
    "ReservationQueue",
    "ItemCreate",
]
