"""Directory store: the sole owner of holders.

Every holder has exactly one ledger account. The directory creates and
destroys that account in the same call that adds or removes the holder.
"""

import logging
from typing import Optional

from ..ledger import Ledger
from .models import Holder, Role

logger = logging.getLogger(__name__)


class Directory:
    """Manages holders, keyed by integer id."""

    def __init__(self, ledger: Ledger):
        """Initialize the directory.

        Args:
            ledger: Ledger whose accounts follow the holders in this directory
        """
        self.ledger = ledger
        self._holders: dict[int, Holder] = {}

    def add(self, holder: Holder) -> bool:
        """Add a holder and open its empty account.

        Args:
            holder: Holder to add

        Returns:
            False if a holder with the same id already exists
        """
        if holder.id in self._holders:
            return False
        self._holders[holder.id] = holder
        self.ledger.open(holder.id)
        logger.debug("Added holder %s (%s)", holder.id, holder.role.value)
        return True

    def remove(self, holder_id: int) -> bool:
        """Remove a holder and close its account.

        Args:
            holder_id: Holder ID

        Returns:
            True if removed
        """
        if self._holders.pop(holder_id, None) is None:
            return False
        self.ledger.close(holder_id)
        return True

    def get(self, holder_id: int) -> Optional[Holder]:
        return self._holders.get(holder_id)

    def verify_credential(self, holder_id: int, secret: str) -> bool:
        """Check a credential against the stored one.

        Returns:
            True only if the holder exists and the credential matches exactly
        """
        holder = self._holders.get(holder_id)
        return holder is not None and holder.verify_credential(secret)

    def list_all(self, role: Optional[Role] = None) -> list[Holder]:
        """List holders ordered by id, optionally filtered by role."""
        holders = [self._holders[i] for i in sorted(self._holders)]
        if role is not None:
            holders = [h for h in holders if h.role == role]
        return holders

    def clear(self) -> None:
        self._holders.clear()

    def __contains__(self, holder_id: object) -> bool:
        return holder_id in self._holders

    def __len__(self) -> int:
        return len(self._holders)
