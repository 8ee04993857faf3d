import pytest

from milu.strings import (
    StringParseError,
    parse_escaped_char,
    parse_escaped_whitespace,
    parse_string,
)


def test_parse_simple_string():
    assert parse_string('"abc"') == ("abc", 5)


def test_parse_string_with_escapes():
    data = (
        '"tab:\\tafter tab, newline:\\nnew line, quote: \\", emoji: \\u{1F602}, '
        'newline:\\nescaped whitespace: \\    abc"'
    )
    value, end = parse_string(data)
    assert value == (
        "tab:\tafter tab, newline:\nnew line, quote: \", emoji: \U0001F602, "
        "newline:\nescaped whitespace: abc"
    )
    assert end == len(data)


def test_parse_string_from_offset_leaves_rest():
    text = 'x = "hi" + 1'
    assert parse_string(text, 4) == ("hi", 8)
    assert text[8:] == " + 1"


def test_empty_string():
    assert parse_string('""') == ("", 2)


@pytest.mark.parametrize(
    "escape, expected",
    [
        ("\\n", "\n"),
        ("\\r", "\r"),
        ("\\t", "\t"),
        ("\\b", "\b"),
        ("\\f", "\f"),
        ("\\\\", "\\"),
        ("\\/", "/"),
        ('\\"', '"'),
        ("\\u{41}", "A"),
        ("\\u{00AC}", "\u00ac"),
    ],
)
def test_parse_escaped_char(escape, expected):
    assert parse_escaped_char(escape, 0) == (expected, len(escape))


def test_extra_escape():
    assert parse_escaped_char("\\$", 0, {"$": "$"}) == ("$", 2)
    with pytest.raises(StringParseError):
        parse_escaped_char("\\$", 0)


@pytest.mark.parametrize("escape", ["\\q", "\\u{}", "\\u{1234567}", "\\u{D800}", "\\u{110000}", "\\"])
def test_invalid_escape(escape):
    with pytest.raises(StringParseError):
        parse_escaped_char(escape, 0)


def test_escaped_whitespace():
    assert parse_escaped_whitespace("\\ \t\r\n x", 0) == 6
    with pytest.raises(StringParseError):
        parse_escaped_whitespace("\\x", 0)


def test_unterminated_string():
    with pytest.raises(StringParseError) as info:
        parse_string('"abc')
    assert info.value.pos == 4


def test_missing_opening_quote():
    with pytest.raises(StringParseError) as info:
        parse_string("abc")
    assert info.value.pos == 0


def test_bad_escape_in_string():
    with pytest.raises(StringParseError):
        parse_string('"a\\qb"')