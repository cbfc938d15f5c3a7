"""The account store: user records backed by a comma-separated text file.

Line format is ``id,name,password,role``. The file must exist before the store
is created; a missing file is treated as a configuration error rather than an
empty library (run ``library-cli init`` to create one).
"""

from __future__ import annotations

import logging
from threading import RLock
from typing import Dict, List, Optional

from storage import MalformedRecordError, StorageIOError, append_line, read_lines, write_lines
from user import User

logger = logging.getLogger(__name__)


class DuplicateAccountError(Exception):
    """The accounts file holds two records with the same id."""

    def __init__(self, account_id: int, path: str) -> None:
        self.account_id = account_id
        self.path = path
        super().__init__(f"Duplicate account id {account_id} in {path}")


class AccountStore:
    """Owns every User record and keeps the accounts file in step with memory."""

    def __init__(self, users_file: str) -> None:
        self.users_file = users_file
        self._lock = RLock()
        self._users: Dict[int, User] = {}
        self._next_id = 0
        self.load()

    # ------------------------- Persistence ------------------------- #
    def load(self) -> None:
        """(Re)read the accounts file, replacing the in-memory records."""
        with self._lock:
            users: Dict[int, User] = {}
            skipped = 0
            for line in read_lines(self.users_file):
                try:
                    user = User.from_line(line)
                except MalformedRecordError as e:
                    logger.warning(f"Skipping account line in {self.users_file}: {e}")
                    skipped += 1
                    continue
                if user.id in users:
                    raise DuplicateAccountError(user.id, self.users_file)
                users[user.id] = user

            self._users = users
            self._next_id = max(len(users), max(users, default=-1) + 1)
            logger.info(f"Loaded {len(users)} accounts from {self.users_file} ({skipped} skipped)")

    def _save(self) -> None:
        write_lines(self.users_file, (u.to_line() for u in self._users.values()))

    # ------------------------- Core operations ------------------------- #
    def add_account(self, name: str, password: str, role: str) -> User:
        """Create, store and append a new account.

        The store does not check that ``name`` is unused; callers do that first
        with ``get_by_name``.
        """
        with self._lock:
            user = User(id=self._next_id, name=name, password=password, role=role)
            line = user.to_line()
            self._users[user.id] = user
            self._next_id += 1
            try:
                append_line(self.users_file, line)
            except StorageIOError:
                logger.error(f"Account {user.id} is in memory but not in {self.users_file}")
                raise
            logger.info(f"Added account {user.id} ({user.name}, role={user.role})")
            return user

    def update_by_id(self, account_id: int, new_account: User) -> None:
        """Replace the record stored under ``account_id`` and rewrite the file.

        Raises ValueError if ``new_account.id`` differs from ``account_id`` or a
        field contains a line break; the store is left unchanged in both cases.
        """
        if new_account.id != account_id:
            raise ValueError(f"Account id {new_account.id} cannot be stored under id {account_id}")
        new_account.to_line()
        with self._lock:
            if account_id not in self._users:
                logger.info(f"update_by_id inserting previously unknown account {account_id}")
            self._users[account_id] = new_account
            self._next_id = max(self._next_id, account_id + 1)
            try:
                self._save()
            except StorageIOError:
                logger.error(f"Account {account_id} updated in memory but {self.users_file} is stale")
                raise

    def get_by_id(self, account_id: int) -> Optional[User]:
        with self._lock:
            return self._users.get(account_id)

    def get_by_name(self, name: str) -> Optional[User]:
        with self._lock:
            for user in self._users.values():
                if user.name == name:
                    return user
            return None

    def list_all(self) -> List[User]:
        """All accounts; an empty list means none are loaded."""
        with self._lock:
            return list(self._users.values())

    def authenticate(self, name: str, password: str) -> Optional[User]:
        """Return the account for ``name`` if ``password`` matches, else None."""
        user = self.get_by_name(name)
        if user is not None and user.check_password(password):
            return user
        return None

    def __len__(self) -> int:
        with self._lock:
            return len(self._users)
