from __future__ import annotations

import logging

from storage import MalformedRecordError, decode_fields, encode_fields

logger = logging.getLogger(__name__)


class Book:
    """Represents a single book item in the library inventory."""

    def __init__(self, author: str, title: str, serial_number: int) -> None:
        self.author = author.strip()
        self.title = title.strip()
        self.serial_number = int(serial_number)

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author} (Serial: {self.serial_number})"

    def __repr__(self) -> str:
        return f"Book(author={self.author!r}, title={self.title!r}, serial_number={self.serial_number})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Book):
            return NotImplemented
        return (self.author, self.title, self.serial_number) == (
            other.author,
            other.title,
            other.serial_number,
        )

    def __hash__(self) -> int:
        return hash((self.author, self.title, self.serial_number))

    def to_dict(self) -> dict:
        return {"author": self.author, "title": self.title, "serial_number": self.serial_number}

    @staticmethod
    def from_dict(data: dict) -> "Book":
        return Book(author=data["author"], title=data["title"], serial_number=data["serial_number"])

    def to_line(self) -> str:
        """Encode as ``author,title,serial_number`` for the inventory file."""
        return encode_fields([self.author, self.title, self.serial_number])

    @staticmethod
    def from_line(line: str) -> "Book":
        """Decode an inventory line.

        Accepts ``author,title,serial_number`` and the older
        ``author,title,serial_number,checkedOut`` layout. The checked-out column
        is ignored: rental state belongs to the Library, not the book.
        """
        fields = decode_fields(line)
        if len(fields) not in (3, 4):
            raise MalformedRecordError(line, f"expected 3 or 4 fields, got {len(fields)}")
        author, title, raw_serial = fields[0], fields[1], fields[2].strip()
        try:
            serial = int(raw_serial)
        except ValueError as e:
            raise MalformedRecordError(line, f"serial number {raw_serial!r} is not an integer") from e
        if len(fields) == 4:
            logger.debug(f"Ignoring legacy checked-out column for serial {serial}")
        return Book(author=author, title=title, serial_number=serial)
