"""Command-line interface for lendingdesk.

Built with Typer for commands and Rich for output. Each command logs in
with a holder id and password, loads the saved state, runs, and saves the
state again on the way out.
"""

import logging
from datetime import datetime
from typing import Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from .catalog import Item, ItemCreate
from .config import get_config
from .directory import HolderCreate, HolderProfile, Role
from .lending import LendingEngine
from .results import LendingError, OperationResult

# Create the main app
app = typer.Typer(
    name="lendingdesk",
    help="Circulation desk for a small library: books, holders, loans and fines.",
    no_args_is_help=True,
)

# Rich consoles for pretty output
console = Console()
err_console = Console(stderr=True)


# ============================================================================
# Helper Functions
# ============================================================================


def print_error(message: str) -> None:
    """Print an error message."""
    console.print(f"[bold red]Error:[/bold red] {escape(message)}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[bold green]Success:[/bold green] {escape(message)}")


def print_warning(message: str) -> None:
    """Print a warning message."""
    console.print(f"[bold yellow]Warning:[/bold yellow] {escape(message)}")


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[dim]{escape(message)}[/dim]")


ERROR_TEXT = {
    LendingError.NOT_FOUND: "Not found",
    LendingError.PERMISSION_DENIED: "Not allowed",
    LendingError.CAPACITY_EXCEEDED: "Borrowing limit reached",
    LendingError.ALREADY_HELD: "Already borrowed",
    LendingError.NOT_HELD: "Not borrowed by you",
    LendingError.UNAVAILABLE: "Not available",
    LendingError.DUPLICATE_RESERVATION: "Already reserved",
    LendingError.UNPAID_FINE: "Outstanding fines",
    LendingError.DUPLICATE_IDENTITY: "ID already in use",
    LendingError.STORAGE_UNAVAILABLE: "Storage unavailable",
    LendingError.INVALID_INPUT: "Invalid input",
}


def fail(result: OperationResult) -> None:
    """Report a refused operation and exit."""
    label = ERROR_TEXT.get(result.error, "Failed")
    print_error(f"{label}: {result.message}" if result.message else label)
    raise typer.Exit(1)


def warn_if_not_saved(result: OperationResult) -> None:
    if not result.persisted:
        print_warning("Change kept in memory only; the data files could not be written.")


def fmt_time(value: datetime) -> str:
    return value.strftime("%Y-%m-%d %H:%M UTC")


def setup_logging(level: str) -> None:
    """Route package logs to stderr through Rich."""
    pkg_logger = logging.getLogger("lendingdesk")
    pkg_logger.setLevel(level)
    if not any(isinstance(h, RichHandler) for h in pkg_logger.handlers):
        pkg_logger.addHandler(RichHandler(console=err_console, show_path=False))


def format_item_table(items: list[Item], title: str = "Books") -> Table:
    """Create a rich table for displaying items."""
    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("ID", justify="right")
    table.add_column("Title", style="cyan", no_wrap=False, max_width=40)
    table.add_column("Author", style="green", max_width=25)
    table.add_column("Publisher", max_width=20)
    table.add_column("Year", justify="center")
    table.add_column("ISBN")
    table.add_column("Status", style="yellow")

    for item in items:
        if not item.available:
            status = "Borrowed"
        elif item.is_reserved:
            status = "Held"
        else:
            status = "Available"
        if item.is_reserved:
            status += f" ({item.reservation_count} waiting)"
        table.add_row(
            str(item.id),
            escape(item.title),
            escape(item.author),
            escape(item.publisher) or "-",
            str(item.year) if item.year else "-",
            escape(item.isbn) or "-",
            status,
        )

    return table


def user_option():
    return typer.Option(..., "--user", "-u", help="Your holder ID")


def password_option():
    return typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Your password"
    )


def login(user: int, password: str) -> tuple[LendingEngine, HolderProfile]:
    """Load saved state and authenticate.

    Raises:
        typer.Exit: If the credentials are rejected
    """
    config = get_config()
    setup_logging(config.log_level)
    for error in config.validate():
        print_warning(error)

    engine = LendingEngine.from_config(config)
    loaded = engine.load_all()
    if not loaded.success:
        print_warning(f"Some data could not be read: {loaded.message}")

    result = engine.authenticate(user, password)
    if not result.success:
        print_error("Invalid credentials!")
        raise typer.Exit(1)
    return engine, result.value


def logout(engine: LendingEngine) -> None:
    """Save state before the command ends."""
    result = engine.save_all()
    if not result.success:
        print_warning(f"State not saved: {result.message}")


def require(profile: HolderProfile, allowed: bool, action: str) -> None:
    if not allowed:
        print_error(f"Your role ({profile.role.label}) is not allowed to {action}.")
        raise typer.Exit(1)


# ============================================================================
# Setup Commands
# ============================================================================


@app.command()
def init(
    holder_id: int = typer.Option(..., "--id", help="Librarian holder ID"),
    name: str = typer.Option(..., "--name", "-n", help="Librarian name"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True
    ),
    department: str = typer.Option("Library", "--department", "-d", help="Department"),
) -> None:
    """Create the first librarian account in an empty data directory."""
    config = get_config()
    setup_logging(config.log_level)
    for error in config.validate():
        print_error(error)
        raise typer.Exit(1)

    engine = LendingEngine.from_config(config)
    engine.load_all()
    if len(engine.directory) > 0:
        print_error("Data directory already has users; log in as a librarian instead.")
        raise typer.Exit(1)

    try:
        data = HolderCreate(
            id=holder_id,
            name=name,
            credential=password,
            role=Role.LIBRARIAN,
            department=department,
        )
    except ValidationError as e:
        print_error(str(e))
        raise typer.Exit(1)

    result = engine.add_holder(data)
    if not result.success:
        fail(result)
    warn_if_not_saved(result)
    print_success(f"Librarian {name} (ID: {holder_id}) created in {config.data_dir}")


@app.command()
def version() -> None:
    """Show version information."""
    from . import __version__

    console.print(f"lendingdesk version {__version__}")


# ============================================================================
# Catalog Commands
# ============================================================================


@app.command()
def books(
    query: str = typer.Argument("", help="Title text to search for; omit to list all"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Search books by title, or list every book."""
    engine, _ = login(user, password)
    items = engine.search_items(query)
    if not items:
        console.print("[dim]No books found[/dim]" if query else "[dim]No books in the library[/dim]")
        return
    title = f"Books matching '{escape(query)}'" if query else f"All Books ({len(items)})"
    console.print(format_item_table(items, title=title))


@app.command("add-book")
def add_book(
    item_id: int = typer.Option(..., "--id", help="Book ID"),
    title: str = typer.Option(..., "--title", "-t", help="Title"),
    author: str = typer.Option(..., "--author", "-a", help="Author"),
    publisher: str = typer.Option("", "--publisher", help="Publisher"),
    year: int = typer.Option(0, "--year", "-y", help="Publication year"),
    isbn: str = typer.Option("", "--isbn", "-i", help="ISBN"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Add a book to the catalog."""
    engine, profile = login(user, password)
    require(profile, profile.can_manage_items, "manage books")

    try:
        data = ItemCreate(
            id=item_id, title=title, author=author, publisher=publisher, year=year, isbn=isbn
        )
    except ValidationError as e:
        print_error(str(e))
        raise typer.Exit(1)

    result = engine.add_item(data)
    if not result.success:
        fail(result)
    warn_if_not_saved(result)
    print_success(f"Added: {title} (ID: {item_id})")
    logout(engine)


@app.command("remove-book")
def remove_book(
    item_id: int = typer.Argument(..., help="Book ID to remove"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Remove a book from the catalog."""
    engine, profile = login(user, password)
    require(profile, profile.can_manage_items, "manage books")

    result = engine.remove_item(item_id)
    if not result.success:
        fail(result)
    warn_if_not_saved(result)
    print_success(f"Book {item_id} removed")
    logout(engine)


# ============================================================================
# Circulation Commands
# ============================================================================


@app.command()
def borrow(
    item_id: int = typer.Argument(..., help="Book ID to borrow"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Borrow a book."""
    engine, profile = login(user, password)
    require(profile, profile.can_borrow, "borrow books")

    item = engine.get_item(item_id)
    result = engine.borrow(user, item_id)
    if not result.success:
        if result.error == LendingError.UNAVAILABLE and item is not None:
            if item.is_reserved_by(user):
                print_info("You have already reserved this book but it's not yet available.")
            elif not item.available:
                print_info("You can reserve it for when it becomes available.")
        fail(result)

    warn_if_not_saved(result)
    print_success(f"Borrowed: {item.title}")
    console.print(f"Due date: {fmt_time(result.value.due_at)}")
    logout(engine)


@app.command("return")
def return_book(
    item_id: int = typer.Argument(..., help="Book ID to return"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Return a borrowed book."""
    engine, profile = login(user, password)
    require(profile, profile.can_borrow, "return books")

    result = engine.return_item(user, item_id)
    if not result.success:
        fail(result)

    warn_if_not_saved(result)
    summary = result.value
    print_success("Book returned")
    if summary.fine_added > 0:
        console.print(
            f"[yellow]Returned {summary.overdue_hours} hour(s) late; "
            f"fine added: {summary.fine_added:.2f}[/yellow]"
        )
    if summary.fine_balance > 0:
        console.print(f"Fine due: {summary.fine_balance:.2f}")
        print_info("Please pay your fines to avoid restrictions on future borrowing.")
    logout(engine)


@app.command()
def reserve(
    item_id: int = typer.Argument(..., help="Book ID to reserve"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Reserve a book that is currently borrowed."""
    engine, profile = login(user, password)
    require(profile, profile.can_borrow, "reserve books")

    item = engine.get_item(item_id)
    if item is None:
        print_error("Book not found.")
        raise typer.Exit(1)
    if item.is_reserved_by(user):
        print_error("You already have a reservation for this book.")
        raise typer.Exit(1)
    if item.available:
        print_error("This book is currently available. You can borrow it directly.")
        raise typer.Exit(1)
    summary = engine.get_account_summary(user)
    if summary and any(loan.item_id == item_id for loan in summary.active_loans):
        print_error("You already have this book.")
        raise typer.Exit(1)

    result = engine.reserve(user, item_id)
    if not result.success:
        fail(result)
    warn_if_not_saved(result)
    print_success(f"Reserved: {item.title} (position {result.value} in queue)")
    logout(engine)


@app.command()
def cancel(
    item_id: int = typer.Argument(..., help="Book ID whose reservation to cancel"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Cancel a reservation."""
    engine, profile = login(user, password)
    require(profile, profile.can_borrow, "reserve books")

    result = engine.cancel_reservation(user, item_id)
    if not result.success:
        fail(result)
    warn_if_not_saved(result)
    print_success("Reservation cancelled")
    logout(engine)


@app.command()
def reservations(
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """List your reservations."""
    engine, profile = login(user, password)
    require(profile, profile.can_borrow, "reserve books")

    items = engine.list_holder_reservations(user)
    if not items:
        console.print("[dim]You have no book reservations.[/dim]")
        return
    console.print(format_item_table(items, title="Your Reserved Books"))


@app.command()
def account(
    history: bool = typer.Option(False, "--history", help="Include returned books"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Show your borrowed books and fines."""
    engine, profile = login(user, password)
    require(profile, profile.can_borrow, "borrow books")

    summary = engine.get_account_summary(user)
    lines = [
        f"[bold]{escape(profile.name)}[/bold] "
        f"({profile.role.label}, {escape(profile.department) or '-'})",
        f"Loans: {len(summary.active_loans)} / {profile.max_concurrent_loans}",
        f"Loan period: {profile.max_loan_duration_days} days",
    ]
    if summary.fine_balance > 0:
        lines.append(f"[red]Total fine: {summary.fine_balance:.2f}[/red]")
    else:
        lines.append("No outstanding fines.")
    console.print(Panel("\n".join(lines), title="Account"))

    if summary.active_loans:
        table = Table(title="Borrowed Books", show_header=True, header_style="bold magenta")
        table.add_column("ID", justify="right")
        table.add_column("Title", style="cyan", max_width=40)
        table.add_column("Borrowed")
        table.add_column("Due")
        for loan in summary.active_loans:
            due = fmt_time(loan.due_at)
            if loan.is_overdue:
                due = f"[bold red]{due} (OVERDUE)[/bold red]"
            table.add_row(str(loan.item_id), escape(loan.title or "-"), fmt_time(loan.borrowed_at), due)
        console.print(table)
    else:
        console.print("[dim]No borrowed books.[/dim]")

    if history and summary.history:
        table = Table(title="History", show_header=True, header_style="bold magenta")
        table.add_column("ID", justify="right")
        table.add_column("Title", style="cyan", max_width=40)
        table.add_column("Borrowed")
        table.add_column("Due")
        for loan in summary.history:
            table.add_row(
                str(loan.item_id), escape(loan.title or "-"), fmt_time(loan.borrowed_at), fmt_time(loan.due_at)
            )
        console.print(table)


@app.command()
def pay(
    amount: float = typer.Argument(..., help="Amount to pay"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Pay towards your fines."""
    engine, profile = login(user, password)
    require(profile, profile.can_borrow, "pay fines")

    summary = engine.get_account_summary(user)
    if summary is None or summary.fine_balance == 0:
        console.print("No fines to pay.")
        return

    result = engine.pay_fine(user, amount)
    if not result.success:
        fail(result)
    warn_if_not_saved(result)
    print_success("Payment successful")
    console.print(f"Remaining fine: {result.value:.2f}")
    logout(engine)


# ============================================================================
# User Management Commands
# ============================================================================


@app.command("add-user")
def add_user(
    holder_id: int = typer.Option(..., "--id", help="New user's ID"),
    name: str = typer.Option(..., "--name", "-n", help="New user's name"),
    role: Role = typer.Option(Role.STUDENT, "--role", "-r", help="Role"),
    department: str = typer.Option("", "--department", "-d", help="Department"),
    new_password: str = typer.Option(
        ..., "--new-password", prompt="New user's password", hide_input=True
    ),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Register a new user."""
    engine, profile = login(user, password)
    require(profile, profile.can_manage_users, "manage users")

    try:
        data = HolderCreate(
            id=holder_id, name=name, credential=new_password, role=role, department=department
        )
    except ValidationError as e:
        print_error(str(e))
        raise typer.Exit(1)

    result = engine.add_holder(data)
    if not result.success:
        fail(result)
    warn_if_not_saved(result)
    print_success(f"Added {role.label.lower()}: {name} (ID: {holder_id})")
    logout(engine)


@app.command("remove-user")
def remove_user(
    holder_id: int = typer.Argument(..., help="User ID to remove"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Remove a user and discard their account."""
    engine, profile = login(user, password)
    require(profile, profile.can_manage_users, "manage users")

    if holder_id == user:
        print_error("You cannot remove yourself.")
        raise typer.Exit(1)

    summary = engine.get_account_summary(holder_id)
    result = engine.remove_holder(holder_id)
    if not result.success:
        fail(result)
    if summary and (summary.active_loans or summary.fine_balance > 0):
        print_warning(
            f"Discarded {len(summary.active_loans)} loan(s) and fines of "
            f"{summary.fine_balance:.2f}"
        )
    warn_if_not_saved(result)
    print_success(f"User {holder_id} removed")
    logout(engine)


@app.command("user")
def show_user(
    holder_id: int = typer.Argument(..., help="User ID to look up"),
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """Show a user's details."""
    engine, profile = login(user, password)
    require(profile, profile.can_manage_users, "manage users")

    other = engine.get_holder_profile(holder_id)
    if other is None:
        print_error("User not found.")
        raise typer.Exit(1)

    console.print(
        Panel(
            f"ID: {other.id}\n"
            f"Name: {escape(other.name)}\n"
            f"Role: {other.role.label}\n"
            f"Department: {escape(other.department) or '-'}",
            title="User Details",
        )
    )


@app.command()
def loans(
    user: int = user_option(),
    password: str = password_option(),
) -> None:
    """List every book currently borrowed, with its borrower."""
    engine, profile = login(user, password)
    require(profile, profile.can_manage_users, "view all loans")

    views = engine.list_all_active_loans()
    if not views:
        console.print("[dim]No books are currently borrowed.[/dim]")
        return

    table = Table(title="Currently Borrowed Books", show_header=True, header_style="bold magenta")
    table.add_column("Book", style="cyan", max_width=30)
    table.add_column("Borrower", style="green")
    table.add_column("Role")
    table.add_column("Department")
    table.add_column("Borrowed")
    table.add_column("Due")

    for view in views:
        due = fmt_time(view.due_at)
        if view.is_overdue:
            due = f"[bold red]{due}[/bold red]"
        table.add_row(
            f"{escape(view.title)} ({view.item_id})",
            f"{escape(view.holder_name)} ({view.holder_id})",
            view.role.label,
            escape(view.department) or "-",
            fmt_time(view.borrowed_at),
            due,
        )

    console.print(table)


if __name__ == "__main__":
    app()
