"""Account records for library members and librarians."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

from storage import MalformedRecordError, decode_fields, encode_fields

LIBRARIAN_ROLE = "librarian"


@dataclass
class User:
    """Representation of one library account.

    Attributes:
        id: unique integer identifier, assigned by the AccountStore.
        name: login username.
        password: stored and compared as plain text.
        role: free-form; "librarian" (any case) grants librarian menus.
        checked_out_books: serials this account has noted as borrowed. Not
            persisted and not maintained by the Library; use
            ``Library.books_held_by`` for the authoritative view.
    """

    id: int
    name: str
    password: str
    role: str
    checked_out_books: List[int] = field(default_factory=list)

    def is_librarian(self) -> bool:
        return self.role.strip().lower() == LIBRARIAN_ROLE

    def check_password(self, password: str) -> bool:
        return self.password == password

    def add_book(self, serial_number: int) -> None:
        self.checked_out_books.append(serial_number)

    def remove_book(self, serial_number: int) -> bool:
        """Drop one occurrence of ``serial_number``. Returns False if absent."""
        try:
            self.checked_out_books.remove(serial_number)
        except ValueError:
            return False
        return True

    def to_line(self) -> str:
        return encode_fields([self.id, self.name, self.password, self.role])

    @staticmethod
    def from_line(line: str) -> "User":
        fields = decode_fields(line)
        if len(fields) != 4:
            raise MalformedRecordError(line, f"expected 4 fields, got {len(fields)}")
        raw_id, name, password, role = fields
        try:
            user_id = int(raw_id.strip())
        except ValueError as e:
            raise MalformedRecordError(line, f"id {raw_id!r} is not an integer") from e
        return User(id=user_id, name=name, password=password, role=role)
