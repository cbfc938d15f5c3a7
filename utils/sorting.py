"""Ordering helpers for book listings."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import Callable, Dict, List, Optional, Union

from book import Book

logger = logging.getLogger(__name__)


class SortKey(IntEnum):
    TITLE = 1
    AUTHOR = 2
    SERIAL_NUMBER = 3


_KEY_FUNCS: Dict[SortKey, Callable[[Book], object]] = {
    SortKey.TITLE: lambda b: b.title.lower(),
    SortKey.AUTHOR: lambda b: b.author.lower(),
    SortKey.SERIAL_NUMBER: lambda b: b.serial_number,
}

_ALIASES = {
    "title": SortKey.TITLE,
    "author": SortKey.AUTHOR,
    "serial": SortKey.SERIAL_NUMBER,
    "serial_number": SortKey.SERIAL_NUMBER,
}


def parse_sort_key(option: Union[SortKey, int, str, None]) -> Optional[SortKey]:
    """Map an enum member, its number or its name to a SortKey; None if unknown."""
    if isinstance(option, SortKey):
        return option
    if isinstance(option, bool):
        return None
    if isinstance(option, int):
        try:
            return SortKey(option)
        except ValueError:
            return None
    if isinstance(option, str):
        text = option.strip().lower()
        if text.isdigit():
            return parse_sort_key(int(text))
        return _ALIASES.get(text)
    return None


def sort_books(books: List[Book], option: Union[SortKey, int, str, None]) -> bool:
    """Sort ``books`` in place by title, author or serial number.

    Returns False and leaves the list untouched when ``option`` is not a
    recognised sort key.
    """
    key = parse_sort_key(option)
    if key is None:
        logger.info(f"Unknown sort option {option!r}; no sorting applied")
        return False
    books.sort(key=_KEY_FUNCS[key])
    return True
