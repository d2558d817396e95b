"""Catalog store: the sole owner of items."""

import logging
from typing import Optional

from .models import Item

logger = logging.getLogger(__name__)


class Catalog:
    """Manages the set of circulating items, keyed by integer id."""

    def __init__(self):
        self._items: dict[int, Item] = {}

    def add(self, item: Item) -> bool:
        """Add an item.

        Args:
            item: Item to add

        Returns:
            False if an item with the same id already exists
        """
        if item.id in self._items:
            return False
        self._items[item.id] = item
        logger.debug("Added item %s", item.id)
        return True

    def remove(self, item_id: int) -> bool:
        """Remove an item together with any pending reservations.

        Args:
            item_id: Item ID

        Returns:
            True if removed
        """
        item = self._items.pop(item_id, None)
        if item is None:
            return False
        if item.is_reserved:
            logger.info(
                "Dropping %d reservation(s) with item %s", len(item.reservations), item_id
            )
        item.reservations.clear()
        return True

    def get(self, item_id: int) -> Optional[Item]:
        return self._items.get(item_id)

    def search(self, query: str = "") -> list[Item]:
        """Find items whose title contains the query, ignoring case.

        An empty query matches every item.

        Args:
            query: Title substring

        Returns:
            Matching items ordered by id
        """
        needle = query.lower()
        return [
            item
            for item_id, item in sorted(self._items.items())
            if needle in item.title.lower()
        ]

    def list_all(self) -> list[Item]:
        return self.search("")

    def clear(self) -> None:
        self._items.clear()

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def __len__(self) -> int:
        return len(self._items)
