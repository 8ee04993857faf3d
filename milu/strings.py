"""Double-quoted string literals with JSON-like escape sequences."""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Optional

_SIMPLE_ESCAPES = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    "b": "\b",
    "f": "\f",
    "\\": "\\",
    "/": "/",
    '"': '"',
}

_UNICODE_ESCAPE = re.compile(r"u\{([0-9A-Fa-f]{1,6})\}")
_WHITESPACE = re.compile(r"[ \t\r\n]+")
_LITERAL = re.compile(r'[^"\\]+')


class StringParseError(ValueError):
    """Raised when a string literal or escape sequence is malformed."""

    def __init__(self, message: str, pos: int) -> None:
        super().__init__(f"{message} at offset {pos}")
        self.message = message
        self.pos = pos


def _parse_unicode(text: str, pos: int) -> Optional[tuple[str, int]]:
    match = _UNICODE_ESCAPE.match(text, pos)
    if match is None:
        return None
    code = int(match.group(1), 16)
    if code > 0x10FFFF or 0xD800 <= code <= 0xDFFF:
        return None
    return chr(code), match.end()


def parse_escaped_char(
    text: str, pos: int, extra: Optional[Mapping[str, str]] = None
) -> tuple[str, int]:
    """Parse an escape such as ``\\n`` or ``\\u{00AC}`` starting at ``pos``.

    ``extra`` maps further escape letters to the characters they stand for.
    Returns the decoded character and the offset just past the escape.
    """
    if not text.startswith("\\", pos):
        raise StringParseError("expected '\\'", pos)
    start = pos + 1
    unicode = _parse_unicode(text, start)
    if unicode is not None:
        return unicode
    if start < len(text):
        letter = text[start]
        if letter in _SIMPLE_ESCAPES:
            return _SIMPLE_ESCAPES[letter], start + 1
        if extra and letter in extra:
            return extra[letter], start + 1
    raise StringParseError("invalid escape sequence", pos)


def parse_escaped_whitespace(text: str, pos: int) -> int:
    """Parse a backslash followed by whitespace; return the offset after it."""
    if not text.startswith("\\", pos):
        raise StringParseError("expected '\\'", pos)
    match = _WHITESPACE.match(text, pos + 1)
    if match is None:
        raise StringParseError("expected whitespace after '\\'", pos + 1)
    return match.end()


def parse_string(text: str, pos: int = 0) -> tuple[str, int]:
    """Parse a double-quoted string starting at ``pos``.

    Returns the decoded string and the offset just past the closing quote.
    """
    if not text.startswith('"', pos):
        raise StringParseError("expected '\"'", pos)
    pos += 1
    parts: list[str] = []
    while True:
        literal = _LITERAL.match(text, pos)
        if literal is not None:
            parts.append(literal.group())
            pos = literal.end()
            continue
        if text.startswith("\\", pos):
            try:
                char, pos = parse_escaped_char(text, pos)
            except StringParseError:
                pos = parse_escaped_whitespace(text, pos)
            else:
                parts.append(char)
            continue
        if text.startswith('"', pos):
            return "".join(parts), pos + 1
        raise StringParseError("unterminated string", pos)