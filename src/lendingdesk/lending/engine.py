"""Lending engine: borrow, return, reserve and fine operations.

The engine is the only entry point the presentation layer uses. It owns the
catalog, directory and ledger, enforces every eligibility rule, and writes
the whole state through to the flat-file store after each mutation.
"""

import logging
from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError

from ..catalog import Catalog, Item, ItemCreate
from ..config import Config, get_config
from ..directory import Directory, Holder, HolderCreate, HolderProfile
from ..ledger import Account, Ledger, LoanRecord, utcnow
from ..results import LendingError, OperationResult
from ..storage import FlatFileStore
from .schemas import (
    AccountSummary,
    ActiveLoanView,
    FinePayment,
    LoanView,
    ReturnSummary,
)

logger = logging.getLogger(__name__)


class LendingEngine:
    """Coordinates items, holders and accounts."""

    def __init__(
        self,
        store: Optional[FlatFileStore] = None,
        clock: Optional[Callable[[], datetime]] = None,
        autosave: bool = True,
    ):
        """Initialize the engine with empty stores.

        Args:
            store: Flat-file store; None keeps everything in memory
            clock: Returns the current time; defaults to UTC now
            autosave: Save after every successful mutation
        """
        self.ledger = Ledger()
        self.catalog = Catalog()
        self.directory = Directory(self.ledger)
        self.store = store
        self.clock = clock or utcnow
        self.autosave = autosave

    @classmethod
    def from_config(cls, config: Optional[Config] = None) -> "LendingEngine":
        """Build an engine backed by the configured data directory."""
        config = config or get_config()
        return cls(store=FlatFileStore(config.data_dir), autosave=config.autosave)

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def save_all(self) -> OperationResult:
        """Write the whole state to the store."""
        if self.store is None:
            return OperationResult.ok(message="No store configured")
        return self.store.save_all(self.catalog, self.directory, self.ledger)

    def load_all(self) -> OperationResult:
        """Replace the in-memory state with what the store holds."""
        if self.store is None:
            return OperationResult.ok(message="No store configured")
        return self.store.load_all(self.catalog, self.directory, self.ledger)

    def reload_account(self, holder_id: int) -> OperationResult:
        """Re-read one holder's account file without touching the bulk files."""
        if holder_id not in self.directory:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Holder {holder_id} not found")
        if self.store is None:
            return OperationResult.ok(self.ledger.get(holder_id))
        account = self.store.reload_account(holder_id, self.catalog, self.ledger)
        return OperationResult.ok(account)

    def _committed(self, value=None, message: str = "") -> OperationResult:
        """Success result for a mutation, saving first when autosave is on.

        A failed save is logged by the store; the mutation stands in memory.
        """
        persisted = True
        if self.autosave and self.store is not None:
            result = self.save_all()
            if not result.success:
                logger.warning("Change kept in memory only: %s", result.message)
                persisted = False
        return OperationResult.ok(value, message, persisted=persisted)

    # -------------------------------------------------------------------------
    # Authentication and profiles
    # -------------------------------------------------------------------------

    def authenticate(self, holder_id: int, secret: str) -> OperationResult:
        """Check a holder's credential.

        Returns:
            Result carrying the HolderProfile on success
        """
        if not self.directory.verify_credential(holder_id, secret):
            return OperationResult.fail(LendingError.PERMISSION_DENIED, "Invalid credentials")
        return OperationResult.ok(self.get_holder_profile(holder_id))

    def get_holder(self, holder_id: int) -> Optional[Holder]:
        return self.directory.get(holder_id)

    def get_holder_profile(self, holder_id: int) -> Optional[HolderProfile]:
        holder = self.directory.get(holder_id)
        if holder is None:
            return None
        profile = holder.profile
        return HolderProfile(
            id=holder.id,
            name=holder.name,
            role=holder.role,
            department=holder.department,
            can_borrow=profile.can_borrow,
            can_manage_items=profile.can_manage_items,
            can_manage_users=profile.can_manage_users,
            max_concurrent_loans=profile.max_concurrent_loans,
            max_loan_duration_days=profile.max_loan_duration_days,
            overdue_fine_rate_per_hour=profile.overdue_fine_rate_per_hour,
        )

    def get_account_summary(self, holder_id: int) -> Optional[AccountSummary]:
        """Loans, history, fine and reservations of one holder."""
        account = self.ledger.get(holder_id)
        if account is None:
            return None
        now = self.clock()
        return AccountSummary(
            holder_id=holder_id,
            fine_balance=account.fine_balance,
            active_loans=[self._loan_view(loan, now) for loan in account.active_loans],
            history=[self._loan_view(loan, None) for loan in account.history],
            reserved_item_ids=[item.id for item in self.list_holder_reservations(holder_id)],
        )

    def _loan_view(self, loan: LoanRecord, now: Optional[datetime]) -> LoanView:
        item = self.catalog.get(loan.item_id)
        return LoanView(
            item_id=loan.item_id,
            title=item.title if item else None,
            borrowed_at=loan.borrowed_at,
            due_at=loan.due_at,
            is_overdue=loan.is_overdue(now) if now is not None else False,
        )

    # -------------------------------------------------------------------------
    # Catalog queries
    # -------------------------------------------------------------------------

    def get_item(self, item_id: int) -> Optional[Item]:
        return self.catalog.get(item_id)

    def search_items(self, query: str) -> list[Item]:
        return self.catalog.search(query)

    def list_all_items(self) -> list[Item]:
        return self.catalog.list_all()

    # -------------------------------------------------------------------------
    # Circulation
    # -------------------------------------------------------------------------

    def borrow(self, holder_id: int, item_id: int) -> OperationResult:
        """Lend an item to a holder.

        Checks run in a fixed order: existence, role, availability
        (including a priority hold for another holder), loan limit,
        duplicate loan, outstanding fine.

        Args:
            holder_id: Borrowing holder
            item_id: Item to lend

        Returns:
            Result carrying a LoanView on success
        """
        holder = self.directory.get(holder_id)
        item = self.catalog.get(item_id)
        account = self.ledger.get(holder_id)
        if holder is None or account is None:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Holder {holder_id} not found")
        if item is None:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Item {item_id} not found")

        profile = holder.profile
        if not profile.can_borrow:
            return OperationResult.fail(
                LendingError.PERMISSION_DENIED,
                f"Role {holder.role.value} is not allowed to borrow",
            )
        if not item.is_available_for(holder_id):
            if item.available:
                message = f"Item {item_id} is held for another holder"
            else:
                message = f"Item {item_id} is currently lent out"
            return OperationResult.fail(LendingError.UNAVAILABLE, message)
        if len(account.active_loans) >= profile.max_concurrent_loans:
            return OperationResult.fail(
                LendingError.CAPACITY_EXCEEDED,
                f"Loan limit of {profile.max_concurrent_loans} reached",
            )
        if account.holds(item_id):
            return OperationResult.fail(LendingError.ALREADY_HELD, f"Item {item_id} already borrowed")
        if account.fine_balance > 0:
            return OperationResult.fail(
                LendingError.UNPAID_FINE,
                f"Outstanding fine of {account.fine_balance:.2f} must be paid first",
            )

        now = self.clock()
        loan = LoanRecord.start(item_id, profile.max_loan_duration_days, now)
        item.available = False
        account.open_loan(loan)
        if item.reservations.head == holder_id:
            item.reservations.pop()
        logger.info("Holder %s borrowed item %s, due %s", holder_id, item_id, loan.due_at)

        return self._committed(self._loan_view(loan, now), "Borrowed")

    def return_item(self, holder_id: int, item_id: int) -> OperationResult:
        """Take an item back from a holder.

        A late return adds whole overdue hours times the role's hourly rate
        to the fine balance. If anyone is queued, the queue head keeps first
        claim on the now-available item; no loan is created for them.

        Returns:
            Result carrying a ReturnSummary on success
        """
        holder = self.directory.get(holder_id)
        item = self.catalog.get(item_id)
        account = self.ledger.get(holder_id)
        if holder is None or account is None:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Holder {holder_id} not found")
        if item is None:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Item {item_id} not found")

        loan = account.find_active(item_id)
        if loan is None:
            return OperationResult.fail(
                LendingError.NOT_HELD, f"Item {item_id} is not borrowed by holder {holder_id}"
            )

        now = self.clock()
        hours = loan.overdue_hours(now)
        fine = hours * holder.profile.overdue_fine_rate_per_hour
        account.add_fine(fine)
        account.close_loan(item_id)
        item.available = True

        held_for = item.reservations.head
        if held_for is not None:
            logger.info("Item %s returned and held for holder %s", item_id, held_for)
        else:
            logger.info("Item %s returned by holder %s", item_id, holder_id)

        summary = ReturnSummary(
            item_id=item_id,
            overdue_hours=hours,
            fine_added=fine,
            fine_balance=account.fine_balance,
            held_for=held_for,
        )
        return self._committed(summary, "Returned")

    def reserve(self, holder_id: int, item_id: int) -> OperationResult:
        """Join the reservation queue for an item.

        Only duplicate reservations are refused here. Reserving an item that
        is already available is left for the caller to reject.
        """
        item = self.catalog.get(item_id)
        if item is None:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Item {item_id} not found")
        if holder_id not in self.directory:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Holder {holder_id} not found")
        if not item.reservations.push(holder_id):
            return OperationResult.fail(
                LendingError.DUPLICATE_RESERVATION, f"Item {item_id} already reserved"
            )
        logger.info(
            "Holder %s reserved item %s (position %d)", holder_id, item_id, len(item.reservations)
        )
        return self._committed(len(item.reservations), "Reserved")

    def cancel_reservation(self, holder_id: int, item_id: int) -> OperationResult:
        """Leave the reservation queue for an item."""
        item = self.catalog.get(item_id)
        if item is None:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Item {item_id} not found")
        if not item.reservations.remove(holder_id):
            return OperationResult.fail(
                LendingError.NOT_FOUND, f"No reservation on item {item_id}"
            )
        return self._committed(message="Reservation cancelled")

    def pay_fine(self, holder_id: int, amount: float) -> OperationResult:
        """Pay towards the fine balance.

        The balance never drops below zero; any excess is discarded.

        Returns:
            Result carrying the remaining balance
        """
        try:
            payment = FinePayment(holder_id=holder_id, amount=amount)
        except ValidationError as e:
            return OperationResult.fail(LendingError.INVALID_INPUT, str(e))

        account = self.ledger.get(payment.holder_id)
        if account is None:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Account {holder_id} not found")
        account.pay_fine(payment.amount)
        return self._committed(account.fine_balance, "Payment accepted")

    # -------------------------------------------------------------------------
    # Reports
    # -------------------------------------------------------------------------

    def list_holder_reservations(self, holder_id: int) -> list[Item]:
        return [item for item in self.catalog.list_all() if item.is_reserved_by(holder_id)]

    def list_all_active_loans(self) -> list[ActiveLoanView]:
        """Every outstanding loan with borrower and item details."""
        now = self.clock()
        views = []
        for account in self.ledger.accounts():
            holder = self.directory.get(account.holder_id)
            if holder is None:
                continue
            for loan in account.active_loans:
                item = self.catalog.get(loan.item_id)
                if item is None:
                    continue
                views.append(
                    ActiveLoanView(
                        item_id=item.id,
                        title=item.title,
                        author=item.author,
                        holder_id=holder.id,
                        holder_name=holder.name,
                        role=holder.role,
                        department=holder.department,
                        borrowed_at=loan.borrowed_at,
                        due_at=loan.due_at,
                        is_overdue=loan.is_overdue(now),
                    )
                )
        return views

    # -------------------------------------------------------------------------
    # Administration
    # -------------------------------------------------------------------------

    def add_item(self, data: ItemCreate) -> OperationResult:
        item = Item(
            id=data.id,
            title=data.title,
            author=data.author,
            publisher=data.publisher,
            year=data.year,
            isbn=data.isbn,
        )
        if not self.catalog.add(item):
            return OperationResult.fail(
                LendingError.DUPLICATE_IDENTITY, f"Item {data.id} already exists"
            )
        return self._committed(item, "Item added")

    def remove_item(self, item_id: int) -> OperationResult:
        """Remove an item from the catalog.

        A loan still open on the item is closed into the borrower's history
        without a fine, so no account keeps a loan for a missing item.
        """
        if item_id not in self.catalog:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Item {item_id} not found")
        borrower = self.ledger.holder_of(item_id)
        if borrower is not None:
            logger.warning("Removing item %s while lent to holder %s", item_id, borrower)
            self.ledger.get(borrower).close_loan(item_id)
        self.catalog.remove(item_id)
        return self._committed(message="Item removed")

    def add_holder(self, data: HolderCreate) -> OperationResult:
        holder = Holder(
            id=data.id,
            name=data.name,
            credential=data.credential,
            role=data.role,
            department=data.department,
        )
        if not self.directory.add(holder):
            return OperationResult.fail(
                LendingError.DUPLICATE_IDENTITY, f"Holder {data.id} already exists"
            )
        return self._committed(self.get_holder_profile(holder.id), "Holder added")

    def remove_holder(self, holder_id: int) -> OperationResult:
        """Remove a holder and discard their account.

        Outstanding loans and fines do not block removal. Items the holder
        had out become available again and their reservations are dropped.
        """
        account: Optional[Account] = self.ledger.get(holder_id)
        if holder_id not in self.directory:
            return OperationResult.fail(LendingError.NOT_FOUND, f"Holder {holder_id} not found")

        if account is not None:
            for loan in account.active_loans:
                item = self.catalog.get(loan.item_id)
                if item is not None:
                    item.available = True
        for item in self.catalog.list_all():
            item.reservations.remove(holder_id)

        self.directory.remove(holder_id)
        return self._committed(message="Holder removed")
