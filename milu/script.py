"""Values, types and evaluation contexts of the expression language."""

from __future__ import annotations

import enum
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any as _AnyHint
from typing import ClassVar, Optional

_U64_MASK = (1 << 64) - 1

_ESCAPES = {
    "\t": "\\t",
    "\r": "\\r",
    "\n": "\\n",
    "\\": "\\\\",
    '"': '\\"',
    "\0": "\\0",
}


def _quote(text: str) -> str:
    """Render a string as a double-quoted literal with escapes."""
    parts = []
    for ch in text:
        if ch in _ESCAPES:
            parts.append(_ESCAPES[ch])
        elif ch.isprintable():
            parts.append(ch)
        else:
            parts.append(f"\\u{{{ord(ch):x}}}")
    return '"' + "".join(parts) + '"'


class ScriptError(Exception):
    """Raised when type inference or evaluation of a script fails."""


class TypeKind(enum.Enum):
    STRING = "string"
    INTEGER = "integer"
    BOOLEAN = "boolean"
    ARRAY = "array"
    TUPLE = "tuple"
    NATIVE_OBJECT = "native"
    ANY = "any"


@dataclass(frozen=True, eq=False, repr=False)
class Type:
    """A static type; ``ANY`` compares equal to every other type."""

    kind: TypeKind
    element: Optional["Type"] = None
    members: tuple["Type", ...] = ()
    native: Optional["NativeObject"] = None

    STRING: ClassVar["Type"]
    INTEGER: ClassVar["Type"]
    BOOLEAN: ClassVar["Type"]
    ANY: ClassVar["Type"]

    def __post_init__(self) -> None:
        object.__setattr__(self, "members", tuple(self.members))

    @staticmethod
    def array_of(element: "Type") -> "Type":
        return Type(TypeKind.ARRAY, element=element)

    @staticmethod
    def tuple_of(members: Iterable["Type"]) -> "Type":
        return Type(TypeKind.TUPLE, members=tuple(members))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Type):
            return NotImplemented
        if self.kind is TypeKind.ANY or other.kind is TypeKind.ANY:
            return True
        if self.kind is not other.kind:
            return False
        if self.kind is TypeKind.ARRAY:
            return self.element == other.element
        if self.kind is TypeKind.TUPLE:
            return len(self.members) == len(other.members) and all(
                a == b for a, b in zip(self.members, other.members)
            )
        if self.kind is TypeKind.NATIVE_OBJECT:
            return self.native.gen_hash() == other.native.gen_hash()
        return True

    def __str__(self) -> str:
        if self.kind is TypeKind.ARRAY:
            return f"[{self.element}]"
        if self.kind is TypeKind.TUPLE:
            return "(" + ",".join(str(m) for m in self.members) + ")"
        if self.kind is TypeKind.NATIVE_OBJECT:
            return f"native@{self.native.gen_hash() & _U64_MASK:x}"
        return self.kind.value

    def __repr__(self) -> str:
        return f"Type({self})"


Type.STRING = Type(TypeKind.STRING)
Type.INTEGER = Type(TypeKind.INTEGER)
Type.BOOLEAN = Type(TypeKind.BOOLEAN)
Type.ANY = Type(TypeKind.ANY)


class Evaluatable(ABC):
    """Something with a static type and a runtime value."""

    @abstractmethod
    def type_of(self, ctx: "ScriptContext") -> Type:
        """Infer the type of this object."""

    @abstractmethod
    def value_of(self, ctx: "ScriptContext") -> "Value":
        """Evaluate this object."""


class Indexable(ABC):
    """A sequence of values of one type addressed by integer index."""

    @abstractmethod
    def length(self) -> int:
        """Number of members."""

    @abstractmethod
    def type_of_member(self, ctx: "ScriptContext") -> Type:
        """Type shared by all members."""

    @abstractmethod
    def get(self, index: int) -> "Value":
        """Member at ``index``."""


class Accessible(ABC):
    """An object with named properties."""

    @abstractmethod
    def names(self) -> list[str]:
        """Names of all properties."""

    @abstractmethod
    def type_of(self, name: str, ctx: "ScriptContext") -> Type:
        """Type of property ``name``."""

    @abstractmethod
    def get(self, name: str) -> "Value":
        """Value of property ``name``."""


class Callable(ABC):
    """A function that can be applied to argument expressions."""

    @abstractmethod
    def signature(self, ctx: "ScriptContext", args: Sequence["Value"]) -> Type:
        """Result type of a call with ``args``; never ``ANY``."""

    @abstractmethod
    def call(self, ctx: "ScriptContext", args: Sequence["Value"]) -> "Value":
        """Apply the function to ``args``."""

    def unresolved_ids(self, args: Sequence["Value"], ids: set) -> None:
        """Add the free identifiers of ``args`` to ``ids``."""
        for arg in args:
            arg.collect_unresolved(ids)


class MappingAccess(Accessible):
    """Property access over a mapping of names to values."""

    def __init__(self, mapping: Mapping[str, "Value"]) -> None:
        self._mapping = mapping

    def names(self) -> list[str]:
        return list(self._mapping)

    def type_of(self, name: str, ctx: "ScriptContext") -> Type:
        return self.get(name).type_of(ctx)

    def get(self, name: str) -> "Value":
        try:
            return self._mapping[name]
        except KeyError:
            raise ScriptError(f"undefined: {name}") from None


class SequenceIndex(Indexable):
    """Indexed access over a sequence of values; negative indexes count from the end."""

    def __init__(self, items: Sequence["Value"]) -> None:
        self._items = items

    def length(self) -> int:
        return len(self._items)

    def type_of_member(self, ctx: "ScriptContext") -> Type:
        return self.get(0).type_of(ctx)

    def get(self, index: int) -> "Value":
        position = index if index >= 0 else len(self._items) + index
        if position < 0:
            raise ScriptError(f"failed to cast index from i64: {index}")
        if position >= len(self._items):
            raise ScriptError(f"index out of bounds: {position}")
        return self._items[position]


@dataclass
class ScriptContext:
    """A scope of named values, chained to an optional parent scope."""

    parent: Optional["ScriptContext"] = None
    variables: dict[str, "Value"] = field(default_factory=dict)

    def lookup(self, name: str) -> "Value":
        scope: Optional[ScriptContext] = self
        while scope is not None:
            if name in scope.variables:
                return scope.variables[name]
            scope = scope.parent
        raise ScriptError(f'"{name}" is undefined')

    def set(self, name: str, value: "Value") -> None:
        self.variables[name] = value


class Value(ABC):
    """Base of every expression node and runtime value."""

    @abstractmethod
    def type_of(self, ctx: ScriptContext) -> Type:
        """Infer the static type of this value."""

    def value_of(self, ctx: ScriptContext) -> "Value":
        return self

    def real_type_of(self, ctx: ScriptContext) -> Type:
        """Type of the value, looking through evaluatable native objects."""
        t = self.type_of(ctx)
        if t.kind is TypeKind.NATIVE_OBJECT:
            evaluatable = t.native.as_evaluatable()
            if evaluatable is not None:
                return evaluatable.type_of(ctx)
        return t

    def real_value_of(self, ctx: ScriptContext) -> "Value":
        """Value, looking through evaluatable native objects."""
        v = self.value_of(ctx)
        if isinstance(v, NativeObject):
            evaluatable = v.as_evaluatable()
            if evaluatable is not None:
                return evaluatable.value_of(ctx)
        return v

    def unresolved_ids(self) -> set:
        """The set of identifiers this expression leaves unbound."""
        ids: set = set()
        self.collect_unresolved(ids)
        return ids

    def collect_unresolved(self, ids: set) -> None:
        """Add unbound identifiers of this expression to ``ids``."""


@dataclass(frozen=True)
class Integer(Value):
    value: int

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type.INTEGER

    def __str__(self) -> str:
        return str(self.value)


@dataclass(frozen=True)
class Boolean(Value):
    value: bool

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type.BOOLEAN

    def __str__(self) -> str:
        return "true" if self.value else "false"


@dataclass(frozen=True)
class String(Value):
    value: str

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type.STRING

    def __str__(self) -> str:
        return _quote(self.value)


@dataclass(frozen=True)
class Identifier(Value):
    name: str

    def type_of(self, ctx: ScriptContext) -> Type:
        return ctx.lookup(self.name).type_of(ctx)

    def value_of(self, ctx: ScriptContext) -> Value:
        return ctx.lookup(self.name).value_of(ctx)

    def collect_unresolved(self, ids: set) -> None:
        ids.add(self)

    def __str__(self) -> str:
        return f"<{self.name}>"


@dataclass(frozen=True)
class Array(Value):
    """A homogeneous sequence of values."""

    items: tuple[Value, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    def type_of(self, ctx: ScriptContext) -> Type:
        if not self.items:
            return Type.array_of(Type.ANY)
        expected = self.items[0].real_type_of(ctx)
        for item in self.items:
            actual = item.real_type_of(ctx)
            if actual != expected:
                raise ScriptError(
                    "array member must have same type: "
                    f"required type={expected}, mismatch type={actual} item={item}"
                )
        return Type.array_of(expected)

    def collect_unresolved(self, ids: set) -> None:
        for item in self.items:
            item.collect_unresolved(ids)

    def __str__(self) -> str:
        return "[" + ",".join(str(item) for item in self.items) + "]"


@dataclass(frozen=True)
class Tuple(Value):
    """A fixed-length sequence of values of possibly different types."""

    items: tuple[Value, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "items", tuple(self.items))

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type.tuple_of(item.type_of(ctx) for item in self.items)

    def collect_unresolved(self, ids: set) -> None:
        for item in self.items:
            item.collect_unresolved(ids)

    def __str__(self) -> str:
        return "(" + ",".join(str(item) for item in self.items) + ")"


class NativeObject(Value):
    """A host object exposed to scripts through optional capability facets."""

    def as_evaluatable(self) -> Optional[Evaluatable]:
        return None

    def as_accessible(self) -> Optional[Accessible]:
        return None

    def as_indexable(self) -> Optional[Indexable]:
        return None

    def as_callable(self) -> Optional[Callable]:
        return None

    def gen_hash(self) -> int:
        """Identity hash; objects with equal hashes are considered equal."""
        return id(self)

    def type_of(self, ctx: ScriptContext) -> Type:
        return Type(TypeKind.NATIVE_OBJECT, native=self)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, NativeObject):
            return self.gen_hash() == other.gen_hash()
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.gen_hash())

    def __str__(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Call(Value):
    """Application of a function to argument expressions."""

    func: Value
    args: tuple[Value, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "args", tuple(self.args))

    def _callable(self, ctx: ScriptContext) -> Callable:
        func = self.func.value_of(ctx) if isinstance(self.func, Identifier) else self.func
        if isinstance(func, NativeObject):
            callable_ = func.as_callable()
            if callable_ is None:
                raise ScriptError("NativeObject does not implement Callable")
            return callable_
        raise ScriptError(f"func does not implement Callable: {func!r}")

    def signature(self, ctx: ScriptContext) -> Type:
        return self._callable(ctx).signature(ctx, self.args)

    def call(self, ctx: ScriptContext) -> Value:
        return self._callable(ctx).call(ctx, self.args)

    def type_of(self, ctx: ScriptContext) -> Type:
        return self.signature(ctx)

    def value_of(self, ctx: ScriptContext) -> Value:
        return self.call(ctx)

    def collect_unresolved(self, ids: set) -> None:
        if isinstance(self.func, Identifier):
            ids.add(self.func)
        elif isinstance(self.func, NativeObject):
            callable_ = self.func.as_callable()
            if callable_ is not None:
                callable_.unresolved_ids(self.args, ids)

    def __str__(self) -> str:
        return f"{self.func}(" + ",".join(str(arg) for arg in self.args) + ")"


def to_value(obj: _AnyHint) -> Value:
    """Convert a plain Python object into a script value."""
    if isinstance(obj, Value):
        return obj
    if isinstance(obj, bool):
        return Boolean(obj)
    if isinstance(obj, int):
        return Integer(obj)
    if isinstance(obj, str):
        return String(obj)
    if isinstance(obj, list):
        return Array(tuple(to_value(item) for item in obj))
    if isinstance(obj, tuple):
        return Tuple(tuple(to_value(item) for item in obj))
    raise TypeError(f"cannot convert {type(obj).__name__} into a script value")