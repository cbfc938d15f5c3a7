from datetime import date, timedelta

import pytest

from accounts import AccountStore
from library import Library


class FakeClock:
    """Callable date source that tests can move forward."""

    def __init__(self, today: date) -> None:
        self.today = today

    def __call__(self) -> date:
        return self.today

    def advance(self, days: int) -> None:
        self.today += timedelta(days=days)


@pytest.fixture
def users_file(tmp_path):
    path = tmp_path / "users.txt"
    path.write_text("", encoding="utf-8")
    return str(path)


@pytest.fixture
def books_file(tmp_path):
    return str(tmp_path / "books.txt")


@pytest.fixture
def accounts(users_file):
    return AccountStore(users_file)


@pytest.fixture
def clock():
    return FakeClock(date(2025, 3, 1))


@pytest.fixture
def lib(books_file, accounts, clock):
    # Each test gets its own files under tmp_path
    return Library(books_file, accounts, clock=clock)
