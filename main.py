import logging
from typing import Callable, Dict, List, Optional, Tuple

import typer

from accounts import AccountStore, DuplicateAccountError
from book import Book
from config import settings
from library import Library, LibraryError
from storage import StorageIOError, ensure_file
from user import User
from utils.sorting import sort_books
from utils.ui_helpers import (
    print_accounts_result,
    print_list_result,
    print_renters_result,
    print_stats_result,
    set_output_mode,
)
from utils.validators import SerialValidator, TextValidator

app = typer.Typer(help=settings.app_name)


# --- Store wiring ---
def open_accounts() -> AccountStore:
    try:
        return AccountStore(settings.users_file)
    except StorageIOError as e:
        print(f"Accounts file unavailable: {e}. Run 'init' first.")
        raise typer.Exit(code=1)
    except DuplicateAccountError as e:
        print(f"Accounts file is inconsistent: {e}")
        raise typer.Exit(code=1)


def open_library(accounts: Optional[AccountStore] = None) -> Library:
    if accounts is None:
        accounts = open_accounts()
    try:
        return Library(
            settings.books_file,
            accounts,
            loan_period_days=settings.loan_period_days,
            fine_per_day=settings.fine_per_day,
        )
    except StorageIOError as e:
        print(f"Inventory file unavailable: {e}")
        raise typer.Exit(code=1)


def _status_map(lib: Library, books: List[Book]) -> Dict[int, str]:
    status: Dict[int, str] = {}
    for b in books:
        due = lib.get_due_date(b.serial_number)
        if due is not None:
            status[b.serial_number] = f"due {due.isoformat()}"
    return status


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global options for the CLI (e.g. output mode)."""
    logging.basicConfig(level=settings.log_level, format="%(levelname)s %(name)s: %(message)s")
    if output:
        set_output_mode(output)


# --- One-shot commands ---
@app.command("init")
def cli_init():
    """Create empty books and users files if they do not exist yet."""
    for path in (settings.books_file, settings.users_file):
        try:
            created = ensure_file(path)
        except StorageIOError as e:
            print(f"Error: {e}")
            raise typer.Exit(code=1)
        print(f"Created {path}" if created else f"{path} already exists")


@app.command("list")
def cli_list(sort: Optional[str] = typer.Option(None, "--sort", "-s", help="title | author | serial")):
    """List every book in the inventory."""
    lib = open_library()
    books = lib.list_all_books()
    if sort and not sort_books(books, sort):
        print(f"Unknown sort option '{sort}'. No sorting applied.")
    print_list_result(books)


@app.command("find")
def cli_find(serial: str):
    """Find a book by serial number and show its details."""
    if not SerialValidator.is_valid_serial(serial):
        print(f"Invalid serial number: {serial}")
        return
    lib = open_library()
    book = lib.find_book(SerialValidator.parse_serial(serial))
    if book:
        print("Book Found")
        print(f"Title: {book.title}")
        print(f"Author: {book.author}")
        print(f"Serial: {book.serial_number}")
    else:
        print(f"Book with serial {serial} not found.")


@app.command("search")
def cli_search(
    title: Optional[str] = typer.Option(None, "--title", "-t", help="Title fragment"),
    author: Optional[str] = typer.Option(None, "--author", "-a", help="Author fragment"),
):
    """Search books by title and/or author (case-insensitive)."""
    lib = open_library()
    if title is None and author is None:
        results = lib.list_all_books()
    elif author is None:
        results = lib.search_by_title(title)
    elif title is None:
        results = lib.search_by_author(author)
    else:
        by_author = {b.serial_number for b in lib.search_by_author(author)}
        results = [b for b in lib.search_by_title(title) if b.serial_number in by_author]
    print_list_result(results)


@app.command("add")
def cli_add(serial: str, title: str, author: str):
    """Add a book (replaces any book with the same serial number)."""
    if not SerialValidator.is_valid_serial(serial):
        print(f"Invalid serial number: {serial}")
        return
    if not TextValidator.validate_title(title):
        print("Error: title must contain at least one letter.")
        return
    if not TextValidator.validate_author(author):
        print("Error: author cannot be empty or numeric.")
        return
    lib = open_library()
    book = Book(author=author, title=title, serial_number=SerialValidator.parse_serial(serial))
    replaced = lib.find_book(book.serial_number) is not None
    try:
        lib.add_book(book)
    except StorageIOError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    verb = "Replaced" if replaced else "Successfully added"
    print(f"{verb}: {book.title} by {book.author}")


@app.command("remove")
def cli_remove(serial: str):
    """Remove a book by serial number."""
    if not SerialValidator.is_valid_serial(serial):
        print(f"Invalid serial number: {serial}")
        return
    lib = open_library()
    try:
        removed = lib.remove_book(SerialValidator.parse_serial(serial))
    except StorageIOError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    if removed:
        print(f"Book with serial {serial} has been removed.")
    else:
        print(f"Book with serial {serial} not found or currently rented.")


@app.command("stats")
def cli_stats():
    """Show library statistics."""
    print_stats_result(open_library().get_statistics())


@app.command("register")
def cli_register(
    name: str,
    password: str,
    role: str = typer.Option(settings.default_role, "--role", "-r", help="member | librarian"),
):
    """Create a new account."""
    if not TextValidator.validate_username(name):
        print("Error: invalid username.")
        return
    if not TextValidator.validate_password(password):
        print("Error: invalid password.")
        return
    accounts = open_accounts()
    # the store does not enforce unique names
    if accounts.get_by_name(name) is not None:
        print(f"Error: an account named '{name}' already exists.")
        return
    try:
        user = accounts.add_account(name, password, role)
    except StorageIOError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    print(f"Created account {user.id} for {user.name} ({user.role})")


@app.command("accounts")
def cli_accounts():
    """List all accounts."""
    print_accounts_result(open_accounts().list_all())


# --- Interactive session ---
def _prompt_serial(label: str = "Serial number") -> Optional[int]:
    raw = typer.prompt(label)
    if not SerialValidator.is_valid_serial(raw):
        print(f"Invalid serial number: {raw}")
        return None
    return SerialValidator.parse_serial(raw)


def _show_all(lib: Library, user: User) -> None:
    books = lib.list_all_books()
    sort_books(books, "title")
    print_list_result(books, _status_map(lib, books))


def _search_title(lib: Library, user: User) -> None:
    fragment = typer.prompt("Title contains", default="", show_default=False)
    books = lib.search_by_title(fragment)
    sort_books(books, "title")
    print_list_result(books, _status_map(lib, books))


def _my_books(lib: Library, user: User) -> None:
    books = lib.books_held_by(user.id)
    if not books:
        print("You have no books checked out.")
        return
    print_list_result(books, _status_map(lib, books))


def _checkout(lib: Library, user: User) -> None:
    serial = _prompt_serial()
    if serial is None:
        return
    try:
        due = lib.checkout_book(serial, user.id)
    except LibraryError as e:
        print(f"Checkout failed: {e}")
        return
    print(f"Checked out {serial}. Due back on {due.isoformat()}.")


def _return(lib: Library, user: User) -> None:
    serial = _prompt_serial()
    if serial is None:
        return
    try:
        fine = lib.return_book(serial, user.id)
    except LibraryError as e:
        print(f"Return failed: {e}")
        return
    if fine > 0:
        print(f"Returned {serial}. Late fine: ${fine:.2f}")
    else:
        print(f"Returned {serial}. No fine.")


def _add_book(lib: Library, user: User) -> None:
    serial = _prompt_serial()
    if serial is None:
        return
    title = typer.prompt("Title")
    author = typer.prompt("Author")
    if not TextValidator.validate_title(title) or not TextValidator.validate_author(author):
        print("Error: title and author are required.")
        return
    lib.add_book(Book(author=author, title=title, serial_number=serial))
    print(f"Added: {title} by {author}")


def _remove_book(lib: Library, user: User) -> None:
    serial = _prompt_serial()
    if serial is None:
        return
    if lib.remove_book(serial):
        print(f"Book with serial {serial} has been removed.")
    else:
        print(f"Book with serial {serial} not found or currently rented.")


def _renters(lib: Library, user: User) -> None:
    print_renters_result(lib.list_renters())


Action = Callable[[Library, User], None]

MEMBER_MENU: List[Tuple[str, Action]] = [
    ("View all books", _show_all),
    ("Search books by title", _search_title),
    ("View my rented books", _my_books),
    ("Check out book", _checkout),
    ("Return book", _return),
]

LIBRARIAN_MENU: List[Tuple[str, Action]] = [
    ("View all books", _show_all),
    ("Search books by title", _search_title),
    ("Add new book", _add_book),
    ("Remove book", _remove_book),
    ("View renters", _renters),
]


@app.command("session")
def cli_session():
    """Log in and work interactively; rentals last for the session only."""
    accounts = open_accounts()
    lib = open_library(accounts)

    name = typer.prompt("Username")
    password = typer.prompt("Password", hide_input=True)
    user = accounts.authenticate(name, password)
    if user is None:
        print("Invalid username or password.")
        raise typer.Exit(code=1)

    menu = LIBRARIAN_MENU if user.is_librarian() else MEMBER_MENU
    role = "Librarian" if user.is_librarian() else "Member"
    print(f"Welcome, {user.name}! ({role} menu)")

    while True:
        print()
        for number, (label, _) in enumerate(menu, 1):
            print(f"{number}. {label}")
        print("0. Log out")
        choice = typer.prompt("Choose", default="0").strip()
        if choice == "0":
            break
        if not choice.isdigit() or not 1 <= int(choice) <= len(menu):
            print(f"Invalid choice: {choice}")
            continue
        _, action = menu[int(choice) - 1]
        try:
            action(lib, user)
        except StorageIOError as e:
            print(f"Error: {e}")
            raise typer.Exit(code=1)

    print("Logged out.")


if __name__ == "__main__":
    app()
