import re
from typing import Optional

_SERIAL_RE = re.compile(r"^\s*\d+\s*$")


class SerialValidator:
    """Serial numbers are caller-supplied non-negative integers."""

    @staticmethod
    def is_valid_serial(raw: Optional[str]) -> bool:
        if raw is None:
            return False
        return bool(_SERIAL_RE.match(str(raw)))

    @staticmethod
    def parse_serial(raw: Optional[str]) -> int:
        if not SerialValidator.is_valid_serial(raw):
            raise ValueError(f"Invalid serial number: {raw!r}")
        return int(str(raw).strip())


class TextValidator:
    """Basic checks for titles, authors and account fields entered at the prompt."""

    @staticmethod
    def _is_non_empty_alpha(text: Optional[str]) -> bool:
        if text is None:
            return False
        t = text.strip()
        if not t:
            return False
        # reject purely numeric / symbol-only values
        return any(c.isalpha() for c in t)

    @staticmethod
    def validate_title(title: Optional[str]) -> bool:
        return TextValidator._is_non_empty_alpha(title)

    @staticmethod
    def validate_author(author: Optional[str]) -> bool:
        # must not be digits only
        if author is None:
            return False
        t = author.strip()
        if not t:
            return False
        return not t.isdigit()

    @staticmethod
    def validate_username(name: Optional[str]) -> bool:
        # names are matched exactly at login, so no edge whitespace or line breaks
        if not name or name != name.strip():
            return False
        return "\n" not in name and "\r" not in name

    @staticmethod
    def validate_password(password: Optional[str]) -> bool:
        if not password:
            return False
        return "\n" not in password and "\r" not in password
