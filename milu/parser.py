"""Parser turning expression source text into script values."""

from __future__ import annotations

import re
from collections.abc import Callable as _Rule
from typing import Optional

from milu.script import (
    Array,
    Boolean,
    Call,
    Identifier,
    Integer,
    ScriptError,
    String,
    Tuple,
    Value,
)
from milu.stdlib import (
    Access,
    And,
    BitAnd,
    BitNot,
    BitOr,
    BitXor,
    Divide,
    Equal,
    Greater,
    GreaterOrEqual,
    If,
    Index,
    IsMemberOf,
    Lesser,
    LesserOrEqual,
    Like,
    Minus,
    Mod,
    Multiply,
    Negative,
    Not,
    NotEqual,
    NotLike,
    Or,
    Plus,
    Scope,
    ShiftLeft,
    ShiftRight,
    ShiftRightUnsigned,
    StringConcat,
    Xor,
)
from milu.strings import (
    StringParseError,
    parse_escaped_char,
    parse_escaped_whitespace,
    parse_string,
)

__all__ = ["ScriptSyntaxError", "parse"]

_I64_MAX = (1 << 63) - 1

_BLANK = re.compile(r"(?:[ \t\r\n]+|#[^\n\r]+|/\*.*?\*/)*", re.S)
_MULTISPACE = re.compile(r"[ \t\r\n]*")
_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_TEMPLATE_LITERAL = re.compile(r"[^`$\\]+")
_TEMPLATE_ESCAPES = {"$": "$"}

# Tried in order; the recognised digits may hold underscores, which the
# conversion rejects so that the next form gets its turn.
_INTEGER_FORMS = (
    (re.compile(r"0[bB]([01][01_]*)"), 2),
    (re.compile(r"0[oO]([0-7][0-7_]*)"), 8),
    (re.compile(r"0[xX]([0-9A-Fa-f][0-9A-Fa-f_]*)"), 16),
    (re.compile(r"([0-9][0-9_]*)"), 10),
)

_UNARY = {"!": Not, "~": BitNot, "-": Negative}

_BINARY = {
    "*": Multiply,
    "/": Divide,
    "%": Mod,
    "+": Plus,
    "-": Minus,
    "<<": ShiftLeft,
    ">>": ShiftRight,
    ">>>": ShiftRightUnsigned,
    ">": Greater,
    ">=": GreaterOrEqual,
    "<": Lesser,
    "<=": LesserOrEqual,
    "==": Equal,
    "!=": NotEqual,
    "=~": Like,
    "!~": NotLike,
    "_:": IsMemberOf,
    "&": BitAnd,
    "^": BitXor,
    "|": BitOr,
    "&&": And,
    "and": And,
    "^^": Xor,
    "xor": Xor,
    "||": Or,
    "or": Or,
}

# Binary operator levels from the tightest binding to the loosest.
# Within a level the first operator whose text matches is taken.
_LEVELS = (
    ("*", "/", "%"),
    ("+", "-"),
    ("<<", ">>", ">>>"),
    (">", ">=", "<", "<="),
    ("==", "!=", "=~", "!~", "_:"),
    ("&",),
    ("^",),
    ("|",),
    ("&&", "and"),
    ("||", "or"),
)
_CASELESS = frozenset({"and", "or"})


class ScriptSyntaxError(ScriptError):
    """Raised when source text is not a well-formed expression."""

    def __init__(self, message: str, pos: int = 0) -> None:
        super().__init__(f"SyntaxError: {message}")
        self.message = message
        self.pos = pos


class _NoMatch(Exception):
    """A rule did not match at the given position."""


class _Parser:
    def __init__(self, text: str) -> None:
        self.text = text
        self._memo: dict[tuple[str, int], Optional[tuple[Value, int]]] = {}
        self._furthest = -1
        self._expected: set[str] = set()

    # -- primitives -------------------------------------------------------

    def _fail(self, pos: int, expected: str) -> _NoMatch:
        if pos > self._furthest:
            self._furthest = pos
            self._expected = {expected}
        elif pos == self._furthest:
            self._expected.add(expected)
        return _NoMatch()

    def _skip(self, pos: int) -> int:
        return _BLANK.match(self.text, pos).end()

    def _tag(self, pos: int, tag: str) -> int:
        if self.text.startswith(tag, pos):
            return pos + len(tag)
        raise self._fail(pos, repr(tag))

    def _ws_tag(self, pos: int, tag: str) -> int:
        return self._tag(self._skip(pos), tag)

    def _memoized(
        self, name: str, pos: int, rule: _Rule[[int], tuple[Value, int]]
    ) -> tuple[Value, int]:
        key = (name, pos)
        if key in self._memo:
            cached = self._memo[key]
            if cached is None:
                raise _NoMatch()
            return cached
        try:
            result = rule(pos)
        except _NoMatch:
            self._memo[key] = None
            raise
        self._memo[key] = result
        return result

    def _separated(
        self, pos: int, item: _Rule[[int], tuple[Value, int]], separator: str
    ) -> tuple[list[Value], int]:
        try:
            first, pos = item(pos)
        except _NoMatch:
            return [], pos
        items = [first]
        while True:
            try:
                after = self._ws_tag(pos, separator)
                value, after = item(after)
            except _NoMatch:
                return items, pos
            items.append(value)
            pos = after

    def _optional_tag(self, pos: int, tag: str) -> int:
        try:
            return self._ws_tag(pos, tag)
        except _NoMatch:
            return pos

    # -- literals ---------------------------------------------------------

    def _string(self, pos: int) -> tuple[Value, int]:
        try:
            text, end = parse_string(self.text, pos)
        except StringParseError as exc:
            raise self._fail(max(exc.pos, pos), "string literal") from None
        return String(text), end

    def _template(self, pos: int) -> tuple[Value, int]:
        pos = self._tag(pos, "`")
        parts: list[Value] = []
        while True:
            literal = _TEMPLATE_LITERAL.match(self.text, pos)
            if literal is not None:
                parts.append(String(literal.group()))
                pos = literal.end()
                continue
            if self.text.startswith("\\", pos):
                try:
                    char, pos = parse_escaped_char(self.text, pos, _TEMPLATE_ESCAPES)
                except StringParseError:
                    pass
                else:
                    parts.append(String(char))
                    continue
                try:
                    pos = parse_escaped_whitespace(self.text, pos)
                except StringParseError:
                    break
                continue
            if self.text.startswith("${", pos):
                try:
                    element, end = self._op_0(pos + 2)
                    end = self._tag(end, "}")
                except _NoMatch:
                    break
                parts.append(element)
                pos = end
                continue
            break
        pos = self._tag(pos, "`")
        return StringConcat.make_call(Array(tuple(parts))), pos

    def _boolean(self, pos: int) -> tuple[Value, int]:
        for word, flag in (("true", True), ("false", False)):
            if self.text.startswith(word, pos):
                return Boolean(flag), pos + len(word)
        raise self._fail(pos, "boolean")

    def _integer(self, pos: int) -> tuple[Value, int]:
        pos = self._skip(pos)
        for pattern, base in _INTEGER_FORMS:
            match = pattern.match(self.text, pos)
            if match is None:
                continue
            digits = match.group(1)
            if "_" in digits:
                continue
            number = int(digits, base)
            if number <= _I64_MAX:
                return Integer(number), match.end()
        raise self._fail(pos, "integer")

    def _identifier(self, pos: int) -> tuple[Identifier, int]:
        pos = self._skip(pos)
        match = _IDENTIFIER.match(self.text, pos)
        if match is None:
            raise self._fail(pos, "identifier")
        return Identifier(match.group()), match.end()

    def _array(self, pos: int) -> tuple[Value, int]:
        pos = self._tag(pos, "[")
        items, pos = self._separated(pos, self._op_0, ",")
        pos = self._optional_tag(pos, ",")
        pos = self._ws_tag(pos, "]")
        return Array(tuple(items)), pos

    def _tuple(self, pos: int) -> tuple[Value, int]:
        pos = self._tag(pos, "(")
        items: list[Value] = []
        while True:
            try:
                item, after = self._op_0(pos)
                after = self._ws_tag(after, ",")
            except _NoMatch:
                break
            items.append(item)
            pos = after
        try:
            last, after = self._op_0(pos)
        except _NoMatch:
            pass
        else:
            if not items:
                # a single parenthesised value is not a tuple
                raise self._fail(pos, "','")
            items.append(last)
            pos = after
        pos = self._ws_tag(pos, ")")
        return Tuple(tuple(items)), pos

    def _value(self, pos: int) -> tuple[Value, int]:
        return self._memoized("value", pos, self._value_rule)

    def _value_rule(self, pos: int) -> tuple[Value, int]:
        start = self._skip(pos)
        for rule in (
            self._string,
            self._template,
            self._boolean,
            self._integer,
            self._identifier,
            self._array,
            self._tuple,
        ):
            try:
                return rule(start)
            except _NoMatch:
                continue
        raise self._fail(start, "value")

    # -- operators --------------------------------------------------------

    def _op_value(self, pos: int) -> tuple[Value, int]:
        start = self._skip(pos)
        if self.text.startswith("(", start):
            for inner in (self._op_0, self._value):
                try:
                    value, end = inner(start + 1)
                    return value, self._ws_tag(end, ")")
                except _NoMatch:
                    continue
        return self._value(start)

    def _postfix(self, target: Value, pos: int) -> tuple[Value, int]:
        start = self._skip(pos)
        try:
            index, end = self._op_0(self._tag(start, "["))
            return Index.make_call(target, index), self._ws_tag(end, "]")
        except _NoMatch:
            pass
        try:
            after = self._tag(start, ".")
            try:
                name, end = self._identifier(after)
            except _NoMatch:
                name, end = self._integer(after)
            return Access.make_call(target, name), end
        except _NoMatch:
            pass
        after = self._tag(start, "(")
        args, end = self._separated(after, self._op_0, ",")
        end = self._ws_tag(end, ")")
        return Call(target, tuple(args)), end

    def _op_8(self, pos: int) -> tuple[Value, int]:
        value, pos = self._op_value(pos)
        while True:
            try:
                value, pos = self._postfix(value, pos)
            except _NoMatch:
                return value, pos

    def _op_7(self, pos: int) -> tuple[Value, int]:
        start = self._skip(pos)
        for symbol, function in _UNARY.items():
            if self.text.startswith(symbol, start):
                try:
                    operand, end = self._op_7(start + len(symbol))
                except _NoMatch:
                    break
                return function.make_call(operand), end
        return self._op_8(start)

    def _match_operator(self, pos: int, operators: tuple[str, ...]) -> Optional[str]:
        for op in operators:
            if op in _CASELESS:
                if self.text[pos : pos + len(op)].lower() == op:
                    return op
            elif self.text.startswith(op, pos):
                return op
        self._fail(pos, " or ".join(repr(op) for op in operators))
        return None

    def _binary(self, level: int, pos: int) -> tuple[Value, int]:
        if level < 0:
            return self._op_7(pos)
        if level == len(_LEVELS) - 1:
            return self._memoized("op_1", pos, self._op_1_rule)
        return self._binary_rule(level, pos)

    def _op_1_rule(self, pos: int) -> tuple[Value, int]:
        return self._binary_rule(len(_LEVELS) - 1, pos)

    def _binary_rule(self, level: int, pos: int) -> tuple[Value, int]:
        left, pos = self._binary(level - 1, pos)
        while True:
            start = self._skip(pos)
            op = self._match_operator(start, _LEVELS[level])
            if op is None:
                return left, pos
            try:
                right, end = self._binary(level - 1, start + len(op))
            except _NoMatch:
                return left, pos
            left = _BINARY[op].make_call(left, right)
            pos = end

    def _op_1(self, pos: int) -> tuple[Value, int]:
        return self._binary(len(_LEVELS) - 1, pos)

    def _op_if(self, pos: int) -> tuple[Value, int]:
        start = self._skip(pos)
        if self.text.startswith("if", start):
            try:
                cond, end = self._op_0(start + 2)
                yes, end = self._op_0(self._ws_tag(end, "then"))
                no, end = self._op_0(self._ws_tag(end, "else"))
                return If.make_call(cond, yes, no), end
            except _NoMatch:
                pass
        cond, end = self._op_1(start)
        yes, end = self._op_0(self._ws_tag(end, "?"))
        no, end = self._op_0(self._ws_tag(end, ":"))
        return If.make_call(cond, yes, no), end

    def _op_assign(self, pos: int) -> tuple[Value, int]:
        name, pos = self._identifier(pos)
        value, pos = self._op_0(self._ws_tag(pos, "="))
        return Tuple((name, value)), pos

    def _op_let(self, pos: int) -> tuple[Value, int]:
        pos = self._tag(self._skip(pos), "let")
        bindings, pos = self._separated(pos, self._op_assign, ";")
        pos = self._optional_tag(pos, ";")
        body, pos = self._op_0(self._ws_tag(pos, "in"))
        return Scope.make_call(Array(tuple(bindings)), body), pos

    def _op_0(self, pos: int) -> tuple[Value, int]:
        return self._memoized("op_0", pos, self._op_0_rule)

    def _op_0_rule(self, pos: int) -> tuple[Value, int]:
        for rule in (self._op_if, self._op_let, self._op_1):
            try:
                return rule(pos)
            except _NoMatch:
                continue
        raise self._fail(self._skip(pos), "expression")

    # -- entry ------------------------------------------------------------

    def root(self) -> Value:
        try:
            value, pos = self._op_0(0)
            pos = _MULTISPACE.match(self.text, pos).end()
            if self.text.startswith(";;", pos):
                pos = _MULTISPACE.match(self.text, pos + 2).end()
            if pos != len(self.text):
                raise self._fail(pos, "end of input")
        except _NoMatch:
            raise self._error() from None
        return value

    def _error(self) -> ScriptSyntaxError:
        pos = max(self._furthest, 0)
        line_start = self.text.rfind("\n", 0, pos) + 1
        line_end = self.text.find("\n", pos)
        if line_end < 0:
            line_end = len(self.text)
        line_no = self.text.count("\n", 0, pos) + 1
        column = pos - line_start + 1
        expected = ", ".join(sorted(self._expected)) or "expression"
        snippet = self.text[line_start:line_end].rstrip("\r")
        message = (
            f"at line {line_no}, column {column}: expected {expected}\n"
            f"{snippet}\n{' ' * (column - 1)}^"
        )
        return ScriptSyntaxError(message, pos)


def parse(source: str) -> Value:
    """Parse ``source`` into an expression value.

    Raises ScriptSyntaxError when the text is not a complete expression.
    """
    try:
        return _Parser(source).root()
    except RecursionError:
        raise ScriptSyntaxError("expression is nested too deeply") from None