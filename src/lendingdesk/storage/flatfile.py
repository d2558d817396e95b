"""Flat-file persistence for the catalog, directory and ledger.

Layout under the data directory (one record per line, ``|`` delimited):

    books.txt                 id|title|author|publisher|year|isbn|available
    students.txt              id|name|credential|department
    faculty.txt               (same as students.txt)
    librarians.txt            (same as students.txt)
    reservations.txt          itemId|holderId|holderId|...
    accounts/<holder id>.txt  BORROW|itemId|borrowEpoch|dueEpoch
                              HISTORY|itemId|borrowEpoch|dueEpoch
                              FINE|amount

Blank lines and lines starting with ``#`` are ignored in the bulk files.
Every save rewrites each file in place; nothing is journalled, so an
interrupted save can leave a file partially written.
"""

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, Iterator, Optional

from ..catalog import Catalog, Item
from ..directory import Directory, Holder, Role
from ..ledger import Account, Ledger, LoanRecord
from ..results import LendingError, OperationResult

logger = logging.getLogger(__name__)

DELIMITER = "|"

BOOKS_FILE = "books.txt"
RESERVATIONS_FILE = "reservations.txt"
ACCOUNTS_DIR = "accounts"

HOLDER_FILES: dict[Role, str] = {
    Role.STUDENT: "students.txt",
    Role.FACULTY: "faculty.txt",
    Role.LIBRARIAN: "librarians.txt",
}


def to_epoch(value: datetime) -> int:
    """Convert a datetime to whole epoch seconds."""
    return int(value.timestamp())


def from_epoch(value: str) -> datetime:
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass
class LoadReport:
    """Summary of a load operation."""

    items: int = 0
    holders: int = 0
    accounts_from_file: int = 0
    reservations: int = 0
    skipped: int = 0
    unreadable: list[Path] = field(default_factory=list)

    @property
    def summary(self) -> str:
        """Get summary string."""
        return (
            f"Items: {self.items}, "
            f"Holders: {self.holders}, "
            f"Accounts: {self.accounts_from_file}, "
            f"Reservations: {self.reservations}, "
            f"Skipped: {self.skipped}"
        )


class FlatFileStore:
    """Durable mirror of the three in-memory stores."""

    def __init__(self, data_dir: Path):
        """Initialize the store.

        Args:
            data_dir: Directory that holds the data files
        """
        self.data_dir = Path(data_dir)

    @property
    def accounts_dir(self) -> Path:
        return self.data_dir / ACCOUNTS_DIR

    def account_path(self, holder_id: int) -> Path:
        return self.accounts_dir / f"{holder_id}.txt"

    # -------------------------------------------------------------------------
    # Low-level record IO
    # -------------------------------------------------------------------------

    def _read_records(
        self, path: Path, report: Optional[LoadReport] = None
    ) -> Iterator[list[str]]:
        """Yield the split fields of each meaningful line in a file.

        A missing file yields nothing. A file that exists but cannot be read
        is logged and noted on the report.
        """
        if not path.exists():
            return
        try:
            with path.open("r", encoding="utf-8") as fh:
                # Records end at "\n" only; text fields may hold other line separators
                lines = fh.read().split("\n")
        except OSError as e:
            logger.error("Could not read %s: %s", path, e)
            if report is not None:
                report.unreadable.append(path)
            return

        for line in lines:
            if not line.strip() or line.startswith("#"):
                continue
            yield line.split(DELIMITER)

    def _write_records(self, path: Path, records: Iterable[Iterable[object]]) -> None:
        """Rewrite a file with one delimited record per line.

        The file is truncated first and written record by record.

        Raises:
            OSError: If the file cannot be opened or written
        """
        with path.open("w", encoding="utf-8") as fh:
            for record in records:
                fh.write(DELIMITER.join(str(part) for part in record) + "\n")

    # -------------------------------------------------------------------------
    # Save
    # -------------------------------------------------------------------------

    def save_all(self, catalog: Catalog, directory: Directory, ledger: Ledger) -> OperationResult:
        """Rewrite every data file from the in-memory stores.

        Failures are logged and reported as ``STORAGE_UNAVAILABLE``; the
        in-memory state is never touched.

        Returns:
            Result of the save
        """
        failures: list[str] = []

        try:
            self.accounts_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error("Could not create data directory %s: %s", self.accounts_dir, e)
            return OperationResult.fail(LendingError.STORAGE_UNAVAILABLE, str(e))

        def attempt(path: Path, records: Iterable[Iterable[object]]) -> None:
            try:
                self._write_records(path, records)
            except OSError as e:
                logger.error("Could not write %s: %s", path, e)
                failures.append(str(path))

        attempt(self.data_dir / BOOKS_FILE, self._item_records(catalog))
        for role, filename in HOLDER_FILES.items():
            attempt(
                self.data_dir / filename,
                (
                    (h.id, h.name, h.credential, h.department)
                    for h in directory.list_all(role)
                ),
            )
        attempt(
            self.data_dir / RESERVATIONS_FILE,
            (
                (item.id, *item.reservations)
                for item in catalog.list_all()
                if item.is_reserved
            ),
        )

        for account in ledger.accounts():
            attempt(self.account_path(account.holder_id), self._account_records(account))

        self._remove_stale_accounts(ledger)

        if failures:
            return OperationResult.fail(
                LendingError.STORAGE_UNAVAILABLE,
                f"Could not write: {', '.join(failures)}",
            )
        logger.info(
            "Saved %d item(s), %d holder(s) to %s", len(catalog), len(directory), self.data_dir
        )
        return OperationResult.ok()

    @staticmethod
    def _item_records(catalog: Catalog) -> Iterator[tuple]:
        for item in catalog.list_all():
            yield (
                item.id,
                item.title,
                item.author,
                item.publisher,
                item.year,
                item.isbn,
                1 if item.available else 0,
            )

    @staticmethod
    def _account_records(account: Account) -> Iterator[tuple]:
        for loan in account.active_loans:
            yield ("BORROW", loan.item_id, to_epoch(loan.borrowed_at), to_epoch(loan.due_at))
        for loan in account.history:
            yield ("HISTORY", loan.item_id, to_epoch(loan.borrowed_at), to_epoch(loan.due_at))
        # repr keeps the float exact across a round trip
        yield ("FINE", repr(float(account.fine_balance)))

    def _remove_stale_accounts(self, ledger: Ledger) -> None:
        """Delete account files whose holder no longer exists."""
        for path in self.accounts_dir.glob("*.txt"):
            try:
                holder_id = int(path.stem)
            except ValueError:
                continue
            if holder_id not in ledger:
                try:
                    path.unlink()
                    logger.info("Removed stale account file %s", path)
                except OSError as e:
                    logger.warning("Could not remove stale account file %s: %s", path, e)

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    def load_all(self, catalog: Catalog, directory: Directory, ledger: Ledger) -> OperationResult:
        """Rebuild the three stores from disk.

        Existing in-memory state is discarded first. Malformed records are
        skipped and counted, never fatal.

        Returns:
            Result whose value is a LoadReport
        """
        report = LoadReport()
        catalog.clear()
        directory.clear()
        ledger.clear()

        self._load_items(catalog, report)
        self._load_holders(directory, report)

        for holder in directory.list_all():
            account = self.read_account(holder.id, report)
            ledger.put(account)

        self._load_reservations(catalog, directory, report)
        self.derive_availability(catalog, ledger)

        logger.info("Loaded state from %s (%s)", self.data_dir, report.summary)
        if report.unreadable:
            return OperationResult(
                success=False,
                error=LendingError.STORAGE_UNAVAILABLE,
                message=f"Could not read: {', '.join(str(p) for p in report.unreadable)}",
                value=report,
            )
        return OperationResult.ok(report)

    def _load_items(self, catalog: Catalog, report: LoadReport) -> None:
        for parts in self._read_records(self.data_dir / BOOKS_FILE, report):
            if len(parts) != 7:
                logger.warning("Skipping malformed book record: %s", DELIMITER.join(parts))
                report.skipped += 1
                continue
            try:
                item = Item(
                    id=int(parts[0]),
                    title=parts[1],
                    author=parts[2],
                    publisher=parts[3],
                    year=int(parts[4]),
                    isbn=parts[5],
                    available=parts[6].strip() == "1",
                )
            except ValueError:
                logger.warning("Skipping malformed book record: %s", DELIMITER.join(parts))
                report.skipped += 1
                continue
            if not catalog.add(item):
                logger.warning("Skipping duplicate book id %s", item.id)
                report.skipped += 1
                continue
            report.items += 1

    def _load_holders(self, directory: Directory, report: LoadReport) -> None:
        for role, filename in HOLDER_FILES.items():
            for parts in self._read_records(self.data_dir / filename, report):
                if len(parts) != 4:
                    logger.warning("Skipping malformed %s record", role.value)
                    report.skipped += 1
                    continue
                try:
                    holder_id = int(parts[0])
                except ValueError:
                    logger.warning("Skipping %s record with bad id: %r", role.value, parts[0])
                    report.skipped += 1
                    continue
                holder = Holder(
                    id=holder_id,
                    name=parts[1],
                    credential=parts[2],
                    role=role,
                    department=parts[3],
                )
                if not directory.add(holder):
                    logger.warning("Skipping duplicate holder id %s", holder_id)
                    report.skipped += 1
                    continue
                report.holders += 1

    def read_account(self, holder_id: int, report: Optional[LoadReport] = None) -> Account:
        """Build one holder's account from its own file.

        A missing file gives a fresh account with no loans and no fine.

        Args:
            holder_id: Holder ID
            report: Optional report to count skipped lines on

        Returns:
            The account
        """
        account = Account(holder_id=holder_id)
        path = self.account_path(holder_id)
        if not path.exists():
            return account

        for parts in self._read_records(path, report):
            kind = parts[0]
            try:
                if kind in ("BORROW", "HISTORY") and len(parts) >= 4:
                    loan = LoanRecord(
                        item_id=int(parts[1]),
                        borrowed_at=from_epoch(parts[2]),
                        due_at=from_epoch(parts[3]),
                    )
                    if kind == "BORROW":
                        account.active_loans.append(loan)
                    else:
                        account.history.append(loan)
                    continue
                if kind == "FINE" and len(parts) >= 2:
                    amount = float(parts[1])
                    if math.isfinite(amount) and amount >= 0:
                        account.add_fine(amount)
                        continue
            except (ValueError, OverflowError, OSError):
                pass
            logger.warning("Skipping malformed line in %s: %s", path, DELIMITER.join(parts))
            if report is not None:
                report.skipped += 1

        if report is not None:
            report.accounts_from_file += 1
        return account

    def _load_reservations(
        self, catalog: Catalog, directory: Directory, report: LoadReport
    ) -> None:
        for parts in self._read_records(self.data_dir / RESERVATIONS_FILE, report):
            try:
                item_id = int(parts[0])
                holder_ids = [int(p) for p in parts[1:] if p.strip()]
            except ValueError:
                logger.warning("Skipping malformed reservation record: %s", DELIMITER.join(parts))
                report.skipped += 1
                continue
            item = catalog.get(item_id)
            if item is None:
                logger.warning("Skipping reservations for unknown item %s", item_id)
                report.skipped += 1
                continue
            for holder_id in holder_ids:
                if holder_id in directory and item.reservations.push(holder_id):
                    report.reservations += 1
                else:
                    report.skipped += 1

    def derive_availability(self, catalog: Catalog, ledger: Ledger) -> None:
        """Set every item's availability from the active loans alone.

        History entries never affect availability. If two accounts claim the
        same item, the later one (by holder id) loses the claim. A loan on an
        item missing from the catalog is closed into history without a fine.
        """
        lent: set[int] = set()
        for account in ledger.accounts():
            for loan in list(account.active_loans):
                if loan.item_id in lent:
                    logger.warning(
                        "Item %s already lent; dropping duplicate loan from account %s",
                        loan.item_id,
                        account.holder_id,
                    )
                    account.active_loans.remove(loan)
                    continue
                if loan.item_id not in catalog:
                    logger.warning(
                        "Account %s holds unknown item %s; closing the loan",
                        account.holder_id,
                        loan.item_id,
                    )
                    account.close_loan(loan.item_id)
                    continue
                lent.add(loan.item_id)

        for item in catalog.list_all():
            available = item.id not in lent
            if item.available != available:
                logger.debug(
                    "Item %s availability on file (%s) disagrees with loans", item.id, item.available
                )
            item.available = available

    def reload_account(self, holder_id: int, catalog: Catalog, ledger: Ledger) -> Account:
        """Re-read a single account file and refresh item availability.

        Args:
            holder_id: Holder ID
            catalog: Catalog whose availability flags follow the loans
            ledger: Ledger to install the account into

        Returns:
            The reloaded account
        """
        account = self.read_account(holder_id)
        ledger.put(account)
        self.derive_availability(catalog, ledger)
        return account
