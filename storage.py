"""Flat-file persistence helpers shared by the account store and the library.

Each store owns exactly one text file with one record per line.  Records are
comma separated; fields that contain a comma or a quote are quoted and inner
quotes doubled (the csv module's minimal quoting), and the reader undoes that
quoting so such values survive a save/load cycle.  Line breaks cannot be
stored: every record occupies exactly one line, so a field holding ``\\r`` or
``\\n`` is rejected with ValueError before anything is written.
"""

from __future__ import annotations

import csv
import io
import logging
import os
from typing import Iterable, Iterator, List

logger = logging.getLogger(__name__)


class StorageIOError(Exception):
    """A backing file could not be read or written.

    When raised from a mutating call the in-memory state has already changed and
    the file no longer mirrors it; nothing reconciles the two automatically.
    """

    def __init__(self, path: str, action: str, reason: str = "") -> None:
        self.path = path
        self.action = action
        self.reason = reason
        message = f"Could not {action} {path}"
        if reason:
            message += f": {reason}"
        super().__init__(message)


class MalformedRecordError(ValueError):
    """A persisted line could not be decoded into a record."""

    def __init__(self, line: str, reason: str) -> None:
        self.line = line
        self.reason = reason
        super().__init__(f"Malformed record {line!r}: {reason}")


def encode_fields(fields: Iterable[object]) -> str:
    """Join fields into a single record line (without the trailing newline).

    Raises ValueError if a field contains a line break.
    """
    values = ["" if f is None else str(f) for f in fields]
    for value in values:
        if "\n" in value or "\r" in value:
            raise ValueError(f"field {value!r} contains a line break")
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_MINIMAL, lineterminator="")
    writer.writerow(values)
    return buf.getvalue()


def decode_fields(line: str) -> List[str]:
    try:
        rows = list(csv.reader([line], strict=True))
    except csv.Error as e:
        raise MalformedRecordError(line, str(e)) from e
    return rows[0] if rows else []


def read_lines(path: str) -> Iterator[str]:
    """Yield the non-blank lines of ``path`` with surrounding whitespace stripped.

    Raises StorageIOError if the file is missing or unreadable.
    """
    try:
        with open(path, "r", encoding="utf-8", newline="") as f:
            lines = f.read().splitlines()
    except OSError as e:
        raise StorageIOError(path, "read", str(e)) from e
    for line in lines:
        line = line.strip()
        if line:
            yield line


def write_lines(path: str, lines: Iterable[str]) -> None:
    """Rewrite ``path`` so that it contains exactly ``lines``.

    ``lines`` is fully consumed before the file is truncated, so an encoding
    error leaves the old contents in place.
    """
    lines = list(lines)
    try:
        with open(path, "w", encoding="utf-8", newline="") as f:
            for line in lines:
                f.write(line + "\n")
    except OSError as e:
        logger.error(f"Failed to rewrite {path}: {e}")
        raise StorageIOError(path, "write", str(e)) from e


def append_line(path: str, line: str) -> None:
    """Append a single record to ``path``, starting a new line if needed."""
    try:
        needs_newline = _ends_without_newline(path)
        with open(path, "a", encoding="utf-8", newline="") as f:
            if needs_newline:
                f.write("\n")
            f.write(line + "\n")
    except OSError as e:
        logger.error(f"Failed to append to {path}: {e}")
        raise StorageIOError(path, "append to", str(e)) from e


def ensure_file(path: str) -> bool:
    """Create an empty file at ``path`` if none exists. Returns True if created."""
    if os.path.exists(path):
        return False
    try:
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        with open(path, "w", encoding="utf-8"):
            pass
    except OSError as e:
        raise StorageIOError(path, "create", str(e)) from e
    logger.info(f"Created empty data file {path}")
    return True


def _ends_without_newline(path: str) -> bool:
    # Hand-edited files often lack a final newline
    if not os.path.exists(path) or os.path.getsize(path) == 0:
        return False
    with open(path, "rb") as f:
        f.seek(-1, os.SEEK_END)
        return f.read(1) not in (b"\n", b"\r")
