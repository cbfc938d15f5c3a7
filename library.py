import logging
from datetime import date, timedelta
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from accounts import AccountStore
from book import Book
from storage import MalformedRecordError, StorageIOError, read_lines, write_lines

logger = logging.getLogger(__name__)

LOAN_PERIOD_DAYS = 14
FINE_PER_DAY = 0.50


class Library:
    """Manages the book inventory, active rentals and their due dates.

    The inventory is mirrored to ``books_file`` after every change. Rentals and
    due dates live only in memory: a new Library built from the same file starts
    with every book available.
    """

    def __init__(
        self,
        books_file: str,
        accounts: AccountStore,
        *,
        loan_period_days: int = LOAN_PERIOD_DAYS,
        fine_per_day: float = FINE_PER_DAY,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.books_file = books_file
        self.accounts = accounts
        self.loan_period_days = loan_period_days
        self.fine_per_day = fine_per_day
        self._clock = clock
        self._lock = RLock()

        self.inventory: Dict[int, Book] = {}
        # serial -> account id, and serial -> due date; always share the same keys
        self.rentals: Dict[int, int] = {}
        self.due_dates: Dict[int, date] = {}

        self.load()

    # ------------------------- Inventory ------------------------- #
    def add_book(self, book: Book) -> None:
        """Add a book, replacing any book that already has its serial number."""
        if book is None:
            raise ValueError("book cannot be None")
        # rejects line breaks before the inventory changes
        book.to_line()
        with self._lock:
            if book.serial_number in self.inventory:
                logger.info(f"Replacing book with serial {book.serial_number}")
            self.inventory[book.serial_number] = book
            self.save()

    def remove_book(self, serial_number: int) -> bool:
        """Remove a book that exists and is not rented. Returns True if removed."""
        with self._lock:
            if serial_number not in self.inventory:
                return False
            if serial_number in self.rentals:
                logger.info(f"Refusing to remove rented book {serial_number}")
                return False
            del self.inventory[serial_number]
            self.save()
            return True

    def list_all_books(self) -> List[Book]:
        """Copies of every book; changing them never touches the inventory."""
        with self._lock:
            return [Book.from_dict(b.to_dict()) for b in self.inventory.values()]

    def find_book(self, serial_number: int) -> Optional[Book]:
        with self._lock:
            return self.inventory.get(serial_number)

    def search_by_title(self, fragment: Optional[str]) -> List[Book]:
        """Books whose title contains ``fragment``, ignoring case."""
        needle = (fragment or "").lower()
        with self._lock:
            return [b for b in self.inventory.values() if needle in b.title.lower()]

    def search_by_author(self, fragment: Optional[str]) -> List[Book]:
        """Books whose author contains ``fragment``, ignoring case."""
        needle = (fragment or "").lower()
        with self._lock:
            return [b for b in self.inventory.values() if needle in b.author.lower()]

    # ------------------------- Rentals ------------------------- #
    def checkout_book(self, serial_number: int, account_id: int) -> date:
        """Rent a book to an account and return its due date.

        Raises BookNotFoundError, BookAlreadyRentedError or AccountNotFoundError,
        checked in that order.
        """
        with self._lock:
            if serial_number not in self.inventory:
                raise BookNotFoundError(serial_number)
            if serial_number in self.rentals:
                raise BookAlreadyRentedError(serial_number)
            if self.accounts.get_by_id(account_id) is None:
                raise AccountNotFoundError(account_id)

            due = self._clock() + timedelta(days=self.loan_period_days)
            self.rentals[serial_number] = account_id
            self.due_dates[serial_number] = due
            logger.info(f"Book {serial_number} checked out to account {account_id}, due {due.isoformat()}")
            return due

    def return_book(self, serial_number: int, account_id: int) -> float:
        """Return a rented book and return the late fine (0.0 if on time).

        Raises BookNotFoundError, NotRentedError or NotRentedByAccountError,
        checked in that order. A failed return leaves the rental in place.
        """
        with self._lock:
            if serial_number not in self.inventory:
                raise BookNotFoundError(serial_number)
            if serial_number not in self.rentals:
                raise NotRentedError(serial_number)
            renter = self.rentals[serial_number]
            if renter != account_id:
                raise NotRentedByAccountError(serial_number, renter, account_id)

            fine = self._fine_for(self.due_dates.get(serial_number))
            del self.rentals[serial_number]
            self.due_dates.pop(serial_number, None)
            if fine:
                logger.info(f"Book {serial_number} returned late by account {account_id}, fine {fine:.2f}")
            else:
                logger.info(f"Book {serial_number} returned by account {account_id}")
            return fine

    def _fine_for(self, due: Optional[date]) -> float:
        if due is None:
            return 0.0
        days_over = (self._clock() - due).days
        return max(0, days_over) * self.fine_per_day

    def is_rented(self, serial_number: int) -> bool:
        with self._lock:
            return serial_number in self.rentals

    def get_renter(self, serial_number: int) -> Optional[int]:
        with self._lock:
            return self.rentals.get(serial_number)

    def get_due_date(self, serial_number: int) -> Optional[date]:
        with self._lock:
            return self.due_dates.get(serial_number)

    def books_held_by(self, account_id: int) -> List[Book]:
        """Books currently rented to ``account_id``, derived from the rental table."""
        with self._lock:
            return [self.inventory[s] for s, renter in self.rentals.items() if renter == account_id]

    def list_overdue(self) -> List[int]:
        """Serial numbers of rented books whose due date has passed."""
        with self._lock:
            today = self._clock()
            return [s for s, due in self.due_dates.items() if due < today]

    def list_renters(self) -> List[str]:
        """One human-readable line per active rental."""
        with self._lock:
            out: List[str] = []
            for serial, account_id in self.rentals.items():
                book = self.inventory.get(serial)
                title = book.title if book else "(unknown book)"
                author = book.author if book else "unknown"
                user = self.accounts.get_by_id(account_id)
                renter = f"{user.id} - {user.name}" if user else str(account_id)
                due = self.due_dates.get(serial)
                due_text = due.isoformat() if due else "no due date"
                out.append(f'{serial}: "{title}" by {author} | rented by {renter} | due {due_text}')
            return out

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "total_books": len(self.inventory),
                "unique_authors": len({b.author.lower() for b in self.inventory.values()}),
                "rented_books": len(self.rentals),
                "overdue_books": len(self.list_overdue()),
            }

    # ------------------------- Persistence ------------------------- #
    def load(self) -> None:
        """Read the inventory file. A missing file means an empty inventory."""
        with self._lock:
            inventory: Dict[int, Book] = {}
            try:
                lines = list(read_lines(self.books_file))
            except StorageIOError as e:
                if isinstance(e.__cause__, FileNotFoundError):
                    logger.info(f"No inventory file at {self.books_file}; starting empty")
                    lines = []
                else:
                    raise
            for line in lines:
                try:
                    book = Book.from_line(line)
                except MalformedRecordError as e:
                    logger.warning(f"Skipping inventory line in {self.books_file}: {e}")
                    continue
                inventory[book.serial_number] = book
            self.inventory = inventory
            for serial in [s for s in self.rentals if s not in inventory]:
                logger.warning(f"Dropping rental of {serial}: no longer in {self.books_file}")
                del self.rentals[serial]
                self.due_dates.pop(serial, None)
            logger.info(f"Loaded {len(inventory)} books from {self.books_file}")

    def save(self) -> None:
        """Rewrite the inventory file from memory. Rentals are not written."""
        with self._lock:
            try:
                write_lines(self.books_file, (b.to_line() for b in self.inventory.values()))
            except StorageIOError:
                logger.error(f"Inventory changed in memory but {self.books_file} is stale")
                raise


class LibraryError(Exception):
    """Base class for rental and inventory errors callers are expected to handle."""


class BookNotFoundError(LibraryError, LookupError):
    def __init__(self, serial_number: int) -> None:
        self.serial_number = serial_number
        super().__init__(f"Book not found: serial={serial_number}")


class BookAlreadyRentedError(LibraryError):
    def __init__(self, serial_number: int) -> None:
        self.serial_number = serial_number
        super().__init__(f"Book already rented: serial={serial_number}")


class NotRentedError(LibraryError):
    def __init__(self, serial_number: int) -> None:
        self.serial_number = serial_number
        super().__init__(f"Book is not rented: serial={serial_number}")


class NotRentedByAccountError(LibraryError):
    def __init__(self, serial_number: int, actual_renter: int, attempted_account: int) -> None:
        self.serial_number = serial_number
        self.actual_renter = actual_renter
        self.attempted_account = attempted_account
        super().__init__(
            f"Book serial={serial_number} is rented by account {actual_renter}, not by account {attempted_account}"
        )


class AccountNotFoundError(LibraryError, LookupError):
    def __init__(self, account_id: int) -> None:
        self.account_id = account_id
        super().__init__(f"Account not found: id={account_id}")
