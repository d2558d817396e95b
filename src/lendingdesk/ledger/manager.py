"""Ledger store: one account per holder."""

import logging
from typing import Iterator, Optional

from .models import Account

logger = logging.getLogger(__name__)


class Ledger:
    """Owns every holder account, keyed by holder id."""

    def __init__(self):
        self._accounts: dict[int, Account] = {}

    def open(self, holder_id: int) -> Account:
        """Create an empty account, replacing any previous one."""
        account = Account(holder_id=holder_id)
        self._accounts[holder_id] = account
        return account

    def put(self, account: Account) -> None:
        """Install a fully built account (used when loading)."""
        self._accounts[account.holder_id] = account

    def close(self, holder_id: int) -> Optional[Account]:
        """Remove and return an account."""
        account = self._accounts.pop(holder_id, None)
        if account is not None and (account.active_loans or account.fine_balance > 0):
            logger.warning(
                "Discarding account %s with %d active loan(s) and fine %.2f",
                holder_id,
                len(account.active_loans),
                account.fine_balance,
            )
        return account

    def get(self, holder_id: int) -> Optional[Account]:
        return self._accounts.get(holder_id)

    def holder_of(self, item_id: int) -> Optional[int]:
        """Return the holder id that has the item out, if any."""
        for holder_id, account in self._accounts.items():
            if account.holds(item_id):
                return holder_id
        return None

    def accounts(self) -> Iterator[Account]:
        """Iterate accounts ordered by holder id."""
        for holder_id in sorted(self._accounts):
            yield self._accounts[holder_id]

    def clear(self) -> None:
        self._accounts.clear()

    def __contains__(self, holder_id: object) -> bool:
        return holder_id in self._accounts

    def __len__(self) -> int:
        return len(self._accounts)
