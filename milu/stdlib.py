"""Built-in functions and operators of the expression language."""

from __future__ import annotations

import operator
import re
from abc import abstractmethod
from collections.abc import Sequence
from typing import Any as _AnyHint
from typing import ClassVar, Optional

from milu.script import (
    Array,
    Boolean,
    Call,
    Callable,
    Evaluatable,
    Identifier,
    Indexable,
    Integer,
    NativeObject,
    ScriptContext,
    ScriptError,
    SequenceIndex,
    String,
    Tuple,
    Type,
    TypeKind,
    Value,
    to_value,
)

_I64_MIN = -(1 << 63)
_U64_MASK = (1 << 64) - 1
_INTEGER_TEXT = re.compile(r"[+-]?[0-9]+")


def _wrap(number: int) -> int:
    """Reduce an integer to the signed 64-bit range, wrapping on overflow."""
    number &= _U64_MASK
    return number - (1 << 64) if number >> 63 else number


def _expect(value: Value, cls: type, target: str) -> _AnyHint:
    if isinstance(value, cls):
        return value
    raise ScriptError(f"unable to cast {value!r} into {target}")


def _as_int(value: Value) -> int:
    return _expect(value, Integer, "i64").value


def _as_bool(value: Value) -> bool:
    return _expect(value, Boolean, "bool").value


def _as_str(value: Value) -> str:
    return _expect(value, String, "String").value


def _sequence_items(value: Value) -> tuple[Value, ...]:
    if isinstance(value, (Array, Tuple)):
        return value.items
    raise ScriptError(f"expected an array or tuple, got {value}")


class Function(NativeObject, Callable):
    """A named built-in callable with declared parameter and result types."""

    params: ClassVar[tuple[tuple[str, Type], ...]] = ()
    returns: ClassVar[Type] = Type.ANY
    raw_args: ClassVar[bool] = False

    @classmethod
    def make_call(cls, *args: _AnyHint) -> Call:
        """Build a call of this function on ``args``."""
        return Call(cls(), tuple(to_value(arg) for arg in args))

    def as_callable(self) -> Optional[Callable]:
        return self

    def gen_hash(self) -> int:
        return hash(("milu.function", type(self).__name__))

    def __str__(self) -> str:
        return type(self).__name__

    def __repr__(self) -> str:
        return type(self).__name__

    def _check_arity(self, args: Sequence[Value]) -> None:
        if len(args) < len(self.params):
            raise ScriptError(
                f"{self} requires {len(self.params)} arguments, got {len(args)}"
            )

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        self._check_arity(args)
        actual = [arg.real_type_of(ctx) for arg in args]
        for (name, expected), got in zip(self.params, actual):
            if got != expected:
                raise ScriptError(
                    f"argument {name} type mismatch, required: {expected} provided: {got}"
                )
        return self.returns

    def call(self, ctx: ScriptContext, args: Sequence[Value]) -> Value:
        self._check_arity(args)
        selected = args[: len(self.params)]
        if self.raw_args:
            values = list(selected)
        else:
            values = [arg.real_value_of(ctx) for arg in selected]
        return self._apply(ctx, *values)

    def unresolved_ids(self, args: Sequence[Value], ids: set) -> None:
        for arg in args:
            arg.collect_unresolved(ids)

    @abstractmethod
    def _apply(self, ctx: ScriptContext, *args: Value) -> Value:
        """Compute the result from the prepared arguments."""


class Index(Function):
    """Dynamic indexing into an array or an indexable native object."""

    params = (("obj", Type.ANY), ("index", Type.ANY))
    raw_args = True

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        self._check_arity(args)
        obj, index = args[0], args[1]
        if index.type_of(ctx) != Type.INTEGER:
            raise ScriptError("Index not a integer type")
        if isinstance(obj, NativeObject):
            indexable = obj.as_indexable()
            if indexable is None:
                raise ScriptError("NativeObject not in indexable")
            return indexable.type_of_member(ctx)
        obj_type = obj.type_of(ctx)
        if obj_type.kind is TypeKind.ARRAY:
            return obj_type.element
        raise ScriptError(f"Object does not implement Indexable: {obj!r}")

    def _apply(self, ctx: ScriptContext, obj: Value, index: Value) -> Value:
        position = _as_int(index.value_of(ctx))
        target = obj.value_of(ctx)
        indexable: Optional[Indexable]
        if isinstance(target, Array):
            indexable = SequenceIndex(target.items)
        elif isinstance(target, NativeObject):
            indexable = target.as_indexable()
            if indexable is None:
                raise ScriptError("NativeObject does not implement Indexible")
        else:
            raise ScriptError("type mismatch")
        return indexable.get(position).value_of(ctx)


def _tuple_position(index: Value, length: int) -> int:
    if not isinstance(index, Integer):
        raise ScriptError(f"Can not access a tuple with: {index}")
    if not 0 <= index.value < length:
        raise ScriptError(f"tuple index out of range: {index.value}")
    return index.value


class Access(Function):
    """Property access on a native object or positional access on a tuple."""

    params = (("obj", Type.ANY), ("index", Type.ANY))
    raw_args = True

    @staticmethod
    def _name(index: Value) -> str:
        if not isinstance(index, Identifier):
            raise ScriptError(f"Can not access a NativeObject with: {index!r}")
        return index.name

    @staticmethod
    def _tuple_type(obj_type: Type, index: Value) -> Type:
        if not isinstance(index, Integer):
            raise ScriptError(f"Can not access a tuple with: {index}")
        if obj_type.kind is not TypeKind.TUPLE:
            raise ScriptError(f"Can not access type: {obj_type}")
        return obj_type.members[_tuple_position(index, len(obj_type.members))]

    @staticmethod
    def _tuple_value(ctx: ScriptContext, obj: Value, index: Value) -> Value:
        if not isinstance(index, Integer):
            raise ScriptError(f"Can not access a tuple with: {index}")
        if not isinstance(obj, Tuple):
            raise ScriptError(f"Can not access type: {obj}")
        return obj.items[_tuple_position(index, len(obj.items))].value_of(ctx)

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        self._check_arity(args)
        obj, index = args[0], args[1]
        obj_type = obj.type_of(ctx)
        if obj_type.kind is TypeKind.NATIVE_OBJECT:
            native = obj_type.native
            accessible = native.as_accessible()
            if accessible is not None:
                return accessible.type_of(self._name(index), ctx)
            evaluatable = native.as_evaluatable()
            if evaluatable is not None:
                return self._tuple_type(evaluatable.type_of(ctx), index)
            raise ScriptError("NativeObject not accessible or tuple")
        if obj_type.kind is TypeKind.TUPLE:
            return self._tuple_type(obj_type, index)
        raise ScriptError(f"Object {obj!r} is not Tuple nor Accessible")

    def _apply(self, ctx: ScriptContext, obj: Value, index: Value) -> Value:
        target = obj.value_of(ctx)
        if isinstance(target, NativeObject):
            accessible = target.as_accessible()
            if accessible is not None:
                return accessible.get(self._name(index)).value_of(ctx)
            evaluatable = target.as_evaluatable()
            if evaluatable is not None:
                return self._tuple_value(ctx, evaluatable.value_of(ctx), index)
            raise ScriptError("NativeObject not accessible or tuple")
        if isinstance(target, Tuple):
            return self._tuple_value(ctx, target, index)
        raise ScriptError(f"Object {target!r} is not Tuple nor Accessible")

    def unresolved_ids(self, args: Sequence[Value], ids: set) -> None:
        # The second argument is always a literal name or position.
        args[0].collect_unresolved(ids)


class If(Function):
    """Conditional expression."""

    params = (("cond", Type.BOOLEAN), ("yes", Type.ANY), ("no", Type.ANY))
    raw_args = True

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        self._check_arity(args)
        cond, yes, no = (arg.type_of(ctx) for arg in args[:3])
        if cond != Type.BOOLEAN:
            raise ScriptError(f"Condition type {cond} is not a Boolean")
        if yes != no:
            raise ScriptError(f"Condition return type must be same: {yes} {no}")
        return yes

    def _apply(self, ctx: ScriptContext, cond: Value, yes: Value, no: Value) -> Value:
        if _as_bool(cond.value_of(ctx)):
            return yes.value_of(ctx)
        return no.value_of(ctx)


class _BindingEvaluation(Evaluatable):
    def __init__(self, ctx: ScriptContext, value: Value) -> None:
        self._ctx = ctx
        self._value = value

    def type_of(self, ctx: ScriptContext) -> Type:
        return self._value.type_of(self._ctx)

    def value_of(self, ctx: ScriptContext) -> Value:
        return self._value.value_of(self._ctx).value_of(ctx)


class _ScopeBinding(NativeObject):
    """A let-bound expression evaluated in the scope that defined it."""

    def __init__(self, ctx: ScriptContext, value: Value) -> None:
        self.ctx = ctx
        self.value = value

    def as_evaluatable(self) -> Optional[Evaluatable]:
        return _BindingEvaluation(self.ctx, self.value)

    def gen_hash(self) -> int:
        return hash(("milu.binding", self.value))

    def __str__(self) -> str:
        return f"ScopeBinding {{ value: {self.value} }}"

    def __repr__(self) -> str:
        return str(self)


class Scope(Function):
    """A let expression: bindings followed by a body."""

    params = (("vars", Type.array_of(Type.ANY)), ("expr", Type.ANY))
    raw_args = True

    @staticmethod
    def _bindings(vars_value: Value) -> list[tuple[Value, Value]]:
        pairs = []
        for binding in _sequence_items(vars_value):
            items = _sequence_items(binding)
            if len(items) < 2:
                raise ScriptError(f"malformed binding: {binding}")
            pairs.append((items[0], items[1]))
        return pairs

    @classmethod
    def _make_context(cls, vars_value: Value, ctx: ScriptContext) -> ScriptContext:
        scope = ScriptContext(parent=ctx)
        for name, value in cls._bindings(vars_value):
            if isinstance(name, Identifier):
                key = name.name
            elif isinstance(name, String):
                key = name.value
            else:
                raise ScriptError(f"binding name must be an identifier: {name}")
            scope.set(key, _ScopeBinding(ctx, value))
        return scope

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        self._check_arity(args)
        return args[1].type_of(self._make_context(args[0], ctx))

    def _apply(self, ctx: ScriptContext, vars_value: Value, expr: Value) -> Value:
        return expr.value_of(self._make_context(vars_value, ctx))

    def unresolved_ids(self, args: Sequence[Value], ids: set) -> None:
        unresolved = args[1].unresolved_ids()
        known = set()
        for name, value in self._bindings(args[0]):
            known.add(name)
            # a binding does not see the names introduced by its own let
            value.collect_unresolved(ids)
        ids |= unresolved - known


class IsMemberOf(Function):
    """Membership test of a value in an array."""

    params = (("a", Type.ANY), ("ary", Type.array_of(Type.ANY)))
    returns = Type.BOOLEAN

    def signature(self, ctx: ScriptContext, args: Sequence[Value]) -> Type:
        self._check_arity(args)
        subject, ary = (arg.type_of(ctx) for arg in args[:2])
        if ary.kind is not TypeKind.ARRAY:
            raise ScriptError(f"argument type {ary} is not an Array")
        if subject != ary.element:
            raise ScriptError(
                "subject must have on same type with array: "
                f"subj={subject} array={ary.element}"
            )
        return Type.BOOLEAN

    def _apply(self, ctx: ScriptContext, a: Value, ary: Value) -> Value:
        array = _expect(ary, Array, "array")
        return Boolean(any(item.value_of(ctx) == a for item in array.items))


class Not(Function):
    params = (("b", Type.BOOLEAN),)
    returns = Type.BOOLEAN

    def _apply(self, ctx: ScriptContext, b: Value) -> Value:
        return Boolean(not _as_bool(b))


class BitNot(Function):
    params = (("b", Type.INTEGER),)
    returns = Type.INTEGER

    def _apply(self, ctx: ScriptContext, b: Value) -> Value:
        return Integer(~_as_int(b))


class Negative(Function):
    params = (("b", Type.INTEGER),)
    returns = Type.INTEGER

    def _apply(self, ctx: ScriptContext, b: Value) -> Value:
        return Integer(_wrap(-_as_int(b)))


def _truncated_quotient(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return -quotient if (a < 0) != (b < 0) else quotient


def _divide(a: int, b: int) -> int:
    if b == 0:
        raise ScriptError("attempt to divide by zero")
    if a == _I64_MIN and b == -1:
        raise ScriptError("attempt to divide with overflow")
    return _truncated_quotient(a, b)


def _remainder(a: int, b: int) -> int:
    if b == 0:
        raise ScriptError("attempt to calculate the remainder with a divisor of zero")
    if a == _I64_MIN and b == -1:
        raise ScriptError("attempt to calculate the remainder with overflow")
    return a - b * _truncated_quotient(a, b)


def _shift_amount(b: int) -> int:
    if not 0 <= b < 64:
        raise ScriptError(f"shift amount out of range: {b}")
    return b


class _IntegerBinary(Function):
    params = (("a", Type.INTEGER), ("b", Type.INTEGER))
    returns = Type.INTEGER

    @staticmethod
    @abstractmethod
    def _op(a: int, b: int) -> int:
        """Combine two integers."""

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        return Integer(self._op(_as_int(a), _as_int(b)))


class Plus(_IntegerBinary):
    _op = staticmethod(lambda a, b: _wrap(a + b))


class Minus(_IntegerBinary):
    _op = staticmethod(lambda a, b: _wrap(a - b))


class Multiply(_IntegerBinary):
    _op = staticmethod(lambda a, b: _wrap(a * b))


class Divide(_IntegerBinary):
    _op = staticmethod(_divide)


class Mod(_IntegerBinary):
    _op = staticmethod(_remainder)


class BitAnd(_IntegerBinary):
    _op = staticmethod(operator.and_)


class BitOr(_IntegerBinary):
    _op = staticmethod(operator.or_)


class BitXor(_IntegerBinary):
    _op = staticmethod(operator.xor)


class ShiftLeft(_IntegerBinary):
    _op = staticmethod(lambda a, b: _wrap(a << _shift_amount(b)))


class ShiftRight(_IntegerBinary):
    _op = staticmethod(lambda a, b: a >> _shift_amount(b))


class ShiftRightUnsigned(_IntegerBinary):
    _op = staticmethod(lambda a, b: _wrap((a & _U64_MASK) >> _shift_amount(b)))


class _BooleanBinary(Function):
    params = (("a", Type.BOOLEAN), ("b", Type.BOOLEAN))
    returns = Type.BOOLEAN
    raw_args = True


class And(_BooleanBinary):
    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        return Boolean(_as_bool(a.real_value_of(ctx)) and _as_bool(b.real_value_of(ctx)))


class Or(_BooleanBinary):
    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        return Boolean(_as_bool(a.real_value_of(ctx)) or _as_bool(b.real_value_of(ctx)))


class Xor(_BooleanBinary):
    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        left = _as_bool(a.real_value_of(ctx))
        right = _as_bool(b.real_value_of(ctx))
        return Boolean(left != right)


class _Comparison(Function):
    params = (("a", Type.ANY), ("b", Type.ANY))
    returns = Type.BOOLEAN

    @staticmethod
    @abstractmethod
    def _op(a: _AnyHint, b: _AnyHint) -> bool:
        """Compare two plain values."""

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        if type(a) is type(b) and isinstance(a, (Integer, String, Boolean)):
            return Boolean(self._op(a.value, b.value))
        raise ScriptError(f"{self}: cannot compare {a} with {b}")


class Greater(_Comparison):
    _op = staticmethod(operator.gt)


class GreaterOrEqual(_Comparison):
    _op = staticmethod(operator.ge)


class Lesser(_Comparison):
    _op = staticmethod(operator.lt)


class LesserOrEqual(_Comparison):
    _op = staticmethod(operator.le)


class Equal(_Comparison):
    _op = staticmethod(operator.eq)


class NotEqual(_Comparison):
    _op = staticmethod(operator.ne)


def _regex_match(text: Value, pattern: Value) -> bool:
    subject = _as_str(text)
    try:
        compiled = re.compile(_as_str(pattern))
    except re.error as exc:
        raise ScriptError(f"failed to compile regex: {exc}") from exc
    return compiled.search(subject) is not None


class Like(Function):
    params = (("a", Type.STRING), ("b", Type.STRING))
    returns = Type.BOOLEAN

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        return Boolean(_regex_match(a, b))


class NotLike(Function):
    params = (("a", Type.STRING), ("b", Type.STRING))
    returns = Type.BOOLEAN

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        return Boolean(not _regex_match(a, b))


class ToString(Function):
    params = (("s", Type.ANY),)
    returns = Type.STRING

    def _apply(self, ctx: ScriptContext, s: Value) -> Value:
        return String(str(s))


class ToInteger(Function):
    params = (("s", Type.STRING),)
    returns = Type.INTEGER

    def _apply(self, ctx: ScriptContext, s: Value) -> Value:
        text = _as_str(s)
        if _INTEGER_TEXT.fullmatch(text):
            number = int(text)
            if _wrap(number) == number:
                return Integer(number)
        raise ScriptError(f"failed to parse integer: {text}")


class Split(Function):
    params = (("a", Type.STRING), ("b", Type.STRING))
    returns = Type.array_of(Type.STRING)

    def _apply(self, ctx: ScriptContext, a: Value, b: Value) -> Value:
        text = _as_str(a)
        delimiter = _as_str(b)
        parts = ["", *text, ""] if delimiter == "" else text.split(delimiter)
        return Array(tuple(String(part) for part in parts))


class StringConcat(Function):
    params = (("a", Type.array_of(Type.STRING)),)
    returns = Type.STRING

    def _apply(self, ctx: ScriptContext, a: Value) -> Value:
        array = _expect(a, Array, "array")
        return String("".join(_as_str(item.real_value_of(ctx)) for item in array.items))


def default_context() -> ScriptContext:
    """A root context holding the functions callable by name from scripts."""
    return ScriptContext(
        variables={
            "to_string": ToString(),
            "to_integer": ToInteger(),
            "split": Split(),
            "strcat": StringConcat(),
        }
    )