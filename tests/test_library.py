import threading
from datetime import date

import pytest

from book import Book
from library import (
    AccountNotFoundError,
    BookAlreadyRentedError,
    BookNotFoundError,
    FINE_PER_DAY,
    LOAN_PERIOD_DAYS,
    Library,
    NotRentedByAccountError,
    NotRentedError,
)
from storage import StorageIOError


@pytest.fixture
def member(accounts):
    return accounts.add_account("Cameron", "camspassword", "user")


@pytest.fixture
def other_member(accounts):
    return accounts.add_account("Erykah", "onandon", "user")


@pytest.fixture
def stocked(lib):
    lib.add_book(Book("J.R.R. Tolkien", "The Hobbit", 1001))
    lib.add_book(Book("Frank Herbert", "Dune", 1002))
    lib.add_book(Book("Ursula K. Le Guin", "The Left Hand of Darkness", 1003))
    return lib


def test_add_list_and_find(lib):
    assert lib.list_all_books() == []

    book = Book("James Joyce", "Ulysses", 42)
    lib.add_book(book)

    assert lib.find_book(42) is book
    assert len(lib.list_all_books()) == 1
    assert lib.list_all_books()[0].title == "Ulysses"


def test_add_same_serial_last_write_wins(lib):
    lib.add_book(Book("First Author", "First Title", 7))
    lib.add_book(Book("Second Author", "Second Title", 7))

    books = [b for b in lib.list_all_books() if b.serial_number == 7]
    assert len(books) == 1
    assert books[0].title == "Second Title"
    assert books[0].author == "Second Author"


def test_replacing_book_keeps_rental(stocked, member):
    stocked.checkout_book(1001, member.id)
    stocked.add_book(Book("Tolkien", "The Hobbit (2nd ed.)", 1001))

    assert stocked.is_rented(1001)
    assert stocked.get_renter(1001) == member.id


def test_list_all_books_is_a_copy(stocked):
    books = stocked.list_all_books()
    books.clear()
    assert len(stocked.list_all_books()) == 3


def test_list_all_books_returns_copies_of_books(stocked, books_file, accounts):
    books = stocked.list_all_books()
    hobbit = next(b for b in books if b.serial_number == 1001)
    hobbit.serial_number = 99
    hobbit.title = "Changed"

    assert stocked.find_book(1001).title == "The Hobbit"
    assert stocked.find_book(99) is None
    stocked.save()
    assert Library(books_file, accounts).find_book(1001).title == "The Hobbit"


def test_checkout_returns_due_date(stocked, member, clock):
    due = stocked.checkout_book(1001, member.id)

    assert due == date(2025, 3, 15)
    assert (due - clock()).days == LOAN_PERIOD_DAYS
    assert stocked.is_rented(1001)
    assert stocked.get_renter(1001) == member.id
    assert stocked.get_due_date(1001) == due


def test_second_checkout_fails(stocked, member, other_member):
    stocked.checkout_book(1001, member.id)
    with pytest.raises(BookAlreadyRentedError):
        stocked.checkout_book(1001, other_member.id)
    assert stocked.get_renter(1001) == member.id


def test_checkout_unknown_book(stocked, member):
    with pytest.raises(BookNotFoundError) as exc:
        stocked.checkout_book(9999, member.id)
    assert exc.value.serial_number == 9999


def test_checkout_unknown_account(stocked):
    with pytest.raises(AccountNotFoundError) as exc:
        stocked.checkout_book(1001, 55)
    assert exc.value.account_id == 55
    assert not stocked.is_rented(1001)


def test_checkout_error_precedence(stocked, member):
    # missing book beats an unknown account
    with pytest.raises(BookNotFoundError):
        stocked.checkout_book(9999, 55)

    # already-rented beats an unknown account
    stocked.checkout_book(1001, member.id)
    with pytest.raises(BookAlreadyRentedError):
        stocked.checkout_book(1001, 55)


def test_return_on_due_date_has_no_fine(stocked, member, clock):
    stocked.checkout_book(1002, member.id)
    clock.advance(LOAN_PERIOD_DAYS)

    assert stocked.return_book(1002, member.id) == 0.0
    assert not stocked.is_rented(1002)
    assert stocked.get_due_date(1002) is None


def test_return_early_has_no_fine(stocked, member, clock):
    stocked.checkout_book(1002, member.id)
    clock.advance(3)
    assert stocked.return_book(1002, member.id) == 0.0


def test_return_one_day_late(stocked, member, clock):
    stocked.checkout_book(1002, member.id)
    clock.advance(LOAN_PERIOD_DAYS + 1)
    assert stocked.return_book(1002, member.id) == pytest.approx(0.50)


@pytest.mark.parametrize("days_late", [2, 5, 30])
def test_return_n_days_late(stocked, member, clock, days_late):
    stocked.checkout_book(1002, member.id)
    clock.advance(LOAN_PERIOD_DAYS + days_late)
    assert stocked.return_book(1002, member.id) == pytest.approx(FINE_PER_DAY * days_late)


def test_custom_fine_policy(books_file, accounts, clock):
    lib = Library(books_file, accounts, loan_period_days=7, fine_per_day=0.25, clock=clock)
    lib.add_book(Book("Author", "Title", 1))
    user = accounts.add_account("reader", "pw", "user")

    assert lib.checkout_book(1, user.id) == date(2025, 3, 8)
    clock.advance(11)
    assert lib.return_book(1, user.id) == pytest.approx(1.0)


def test_return_by_wrong_account_keeps_rental(stocked, member, other_member):
    stocked.checkout_book(1003, member.id)

    with pytest.raises(NotRentedByAccountError) as exc:
        stocked.return_book(1003, other_member.id)
    assert exc.value.actual_renter == member.id
    assert exc.value.attempted_account == other_member.id
    assert str(member.id) in str(exc.value)
    assert str(other_member.id) in str(exc.value)

    assert stocked.get_renter(1003) == member.id
    assert stocked.get_due_date(1003) is not None
    assert stocked.return_book(1003, member.id) == 0.0


def test_return_errors(stocked, member):
    with pytest.raises(BookNotFoundError):
        stocked.return_book(9999, member.id)
    with pytest.raises(NotRentedError):
        stocked.return_book(1001, member.id)


def test_remove(stocked):
    assert stocked.remove_book(1002) is True
    assert stocked.remove_book(1002) is False  # Should return False if not found
    assert all(b.serial_number != 1002 for b in stocked.list_all_books())


def test_remove_rented_book_fails(stocked, member):
    stocked.checkout_book(1001, member.id)
    before = stocked.list_all_books()

    assert stocked.remove_book(1001) is False
    assert stocked.list_all_books() == before
    assert stocked.find_book(1001) is not None


def test_search_is_case_insensitive_substring(stocked):
    assert [b.serial_number for b in stocked.search_by_title("HOBB")] == [1001]
    assert {b.serial_number for b in stocked.search_by_title("the")} == {1001, 1003}
    assert [b.serial_number for b in stocked.search_by_author("herb")] == [1002]
    assert stocked.search_by_author("nobody") == []


def test_empty_fragment_matches_everything(stocked):
    assert len(stocked.search_by_title("")) == 3
    assert len(stocked.search_by_author("")) == 3
    assert len(stocked.search_by_title(None)) == 3


def test_list_renters(stocked, member, accounts):
    stocked.checkout_book(1001, member.id)
    lines = stocked.list_renters()

    assert len(lines) == 1
    assert "The Hobbit" in lines[0]
    assert "J.R.R. Tolkien" in lines[0]
    assert f"{member.id} - Cameron" in lines[0]
    assert "2025-03-15" in lines[0]


def test_list_renters_falls_back_to_bare_id(stocked, member):
    stocked.checkout_book(1002, member.id)
    # simulate an account that vanished after checkout
    stocked.accounts = type("NoAccounts", (), {"get_by_id": lambda self, i: None})()

    lines = stocked.list_renters()
    assert "rented by 0 |" in lines[0]
    assert "Cameron" not in lines[0]


def test_books_held_by_is_derived_from_rentals(stocked, member, other_member):
    stocked.checkout_book(1001, member.id)
    stocked.checkout_book(1003, member.id)
    stocked.checkout_book(1002, other_member.id)

    assert {b.serial_number for b in stocked.books_held_by(member.id)} == {1001, 1003}
    # the account's own list is not touched by checkout
    assert member.checked_out_books == []

    stocked.return_book(1001, member.id)
    assert [b.serial_number for b in stocked.books_held_by(member.id)] == [1003]


def test_list_overdue_and_statistics(stocked, member, clock):
    stocked.checkout_book(1001, member.id)
    clock.advance(LOAN_PERIOD_DAYS)
    stocked.checkout_book(1002, member.id)
    clock.advance(1)

    assert stocked.list_overdue() == [1001]
    stats = stocked.get_statistics()
    assert stats == {"total_books": 3, "unique_authors": 3, "rented_books": 2, "overdue_books": 1}


def test_persistence_round_trip(stocked, books_file, accounts):
    stocked.add_book(Book("Yuval Noah Harari", "Sapiens", 2001))

    lib2 = Library(books_file, accounts)
    before = {b.serial_number: (b.author, b.title) for b in stocked.list_all_books()}
    after = {b.serial_number: (b.author, b.title) for b in lib2.list_all_books()}
    assert after == before


def test_reload_does_not_resurrect_rentals(stocked, member, books_file, accounts):
    stocked.checkout_book(1001, member.id)
    stocked.checkout_book(1002, member.id)

    lib2 = Library(books_file, accounts)
    assert lib2.rentals == {}
    assert lib2.due_dates == {}
    assert not lib2.is_rented(1001)
    assert lib2.get_renter(1002) is None
    assert len(lib2.list_all_books()) == 3

    # reloading in place keeps rentals whose books are still on file
    stocked.load()
    assert stocked.is_rented(1001)


def test_reload_drops_rentals_of_vanished_books(stocked, member, books_file):
    stocked.checkout_book(1001, member.id)
    with open(books_file, "w", encoding="utf-8") as f:
        f.write("Frank Herbert,Dune,1002\n")

    stocked.load()
    assert not stocked.is_rented(1001)
    assert stocked.get_due_date(1001) is None


def test_round_trip_with_commas_and_quotes(lib, books_file, accounts):
    lib.add_book(Book("Strunk, William", 'The "Elements" of Style', 5))

    reloaded = Library(books_file, accounts).find_book(5)
    assert reloaded.author == "Strunk, William"
    assert reloaded.title == 'The "Elements" of Style'


@pytest.mark.parametrize("title", ["Line one\nLine two", "Carriage\rreturn"])
def test_add_book_rejects_line_breaks(stocked, books_file, accounts, title):
    with pytest.raises(ValueError):
        stocked.add_book(Book("Author", title, 5))

    assert stocked.find_book(5) is None
    reloaded = Library(books_file, accounts)
    assert len(reloaded.list_all_books()) == 3


def test_file_format(lib, books_file):
    lib.add_book(Book("Tolkien", "The Hobbit", 1001))
    with open(books_file, encoding="utf-8") as f:
        assert f.read() == "Tolkien,The Hobbit,1001\n"


def test_load_skips_blank_and_malformed_lines(tmp_path, accounts, caplog):
    path = tmp_path / "books.txt"
    path.write_text(
        "Tolkien,The Hobbit,1001\n"
        "\n"
        "just one field\n"
        "Herbert,Dune,not-a-number\n"
        "Le Guin,The Dispossessed,1004,true\n"
        "Asimov,Foundation,1005\n",
        encoding="utf-8",
    )

    with caplog.at_level("WARNING", logger="library"):
        lib = Library(str(path), accounts)

    assert sorted(b.serial_number for b in lib.list_all_books()) == [1001, 1004, 1005]
    assert not lib.is_rented(1004)  # legacy checked-out column is ignored
    assert len([r for r in caplog.records if "Skipping" in r.message]) == 2


def test_missing_inventory_file_starts_empty(tmp_path, accounts):
    lib = Library(str(tmp_path / "nope.txt"), accounts)
    assert lib.list_all_books() == []


def test_unreadable_inventory_path_raises(tmp_path, accounts):
    # a directory cannot be opened as the inventory file
    with pytest.raises(StorageIOError):
        Library(str(tmp_path), accounts)


def test_save_failure_raises_and_keeps_memory(lib, tmp_path):
    lib.books_file = str(tmp_path / "missing-dir" / "books.txt")
    with pytest.raises(StorageIOError):
        lib.add_book(Book("Author", "Title", 3))
    # no rollback: memory and disk now disagree
    assert lib.find_book(3) is not None


def test_concurrent_checkouts_of_one_serial(stocked, accounts):
    users = [accounts.add_account(f"reader{i}", "pw", "user") for i in range(8)]
    results = []
    barrier = threading.Barrier(len(users))

    def attempt(user_id):
        barrier.wait()
        try:
            stocked.checkout_book(1001, user_id)
            results.append(("ok", user_id))
        except BookAlreadyRentedError:
            results.append(("rented", user_id))

    threads = [threading.Thread(target=attempt, args=(u.id,)) for u in users]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    winners = [uid for status, uid in results if status == "ok"]
    assert len(winners) == 1
    assert stocked.get_renter(1001) == winners[0]
    assert set(stocked.rentals) == set(stocked.due_dates)
