# milu

milu is a small, statically typed expression language. An expression is
parsed into a tree of values, its type is checked against a context, and
then it is evaluated to a value.

## Language at a glance

- Literals: integers in decimal, hexadecimal, octal and binary (`42`,
  `0x2a`, `0o52`, `0b101010`), booleans (`true`, `false`), strings with
  escapes (`"text\n"`, `"\u{1F602}"`), arrays (`[1, 2, 3]`) and tuples
  (`(1, "a", false)`, `(1,)`, `()`). All members of an array must have the
  same type. Integers are signed 64-bit and wrap on overflow.
- Template strings: `` `x=${to_string(1+2)}` ``; write `\$` for a literal
  dollar sign.
- Operators, from the tightest binding to the loosest: calls, indexing and
  member access (`f(x)`, `a[0]`, `a[-1]`, `t.1`, `obj.name`); unary `!`,
  `~`, `-`; `*`, `/`, `%`; `+`, `-`; `<<`, `>>`, `>>>`; `>`, `>=`, `<`,
  `<=`; `==`, `!=`, `=~` (regular-expression search), `!~`, `_:` (member of
  array); `&`; `^`; `|`; `&&` / `and`; `||` / `or`. The words `and` and
  `or` are matched without regard to case.
- Conditionals: `if a then b else c` and `a ? b : c`. Both branches must
  have the same type.
- Bindings: `let a = 1; b = 2 in a + b`. A binding does not see the other
  names introduced by the same `let`.
- Comments: `# to end of line` and `/* inline */`.
- Built-in functions: `to_string`, `to_integer`, `split`, `strcat`.

## Using it from Python

```python
from milu.parser import parse
from milu.stdlib import default_context

expr = parse("let a = 1; b = 2 in a + b")
ctx = default_context()
print(expr.type_of(ctx))   # integer
print(expr.value_of(ctx))  # 3
```

`milu.repl.evaluate(source, ctx)` does the three steps at once and returns
the value together with its type.

Contexts chain: `ScriptContext(parent=default_context())` gives a new scope
whose names are added with `set(name, value)`; `milu.script.to_value`
turns plain Python integers, booleans, strings, lists and tuples into script
values. Host objects can be exposed by subclassing
`milu.script.NativeObject` and returning implementations of `Accessible`,
`Indexable`, `Evaluatable` or `Callable` from its `as_*` methods.

`Value.unresolved_ids()` returns the identifiers an expression leaves
unbound.

Syntax errors raise `milu.parser.ScriptSyntaxError`, a subclass of
`milu.script.ScriptError`, which type and evaluation errors raise.

## Command line

Evaluate a file and print `value : type`:

```
milu-repl expression.milu
```

Or start an interactive session with no argument. End each expression with
`;;`, and press Ctrl-D to leave:

```
milu-repl
1> [1, 2, 3][0] * 10;;
10 : integer
```

When standard input is not a terminal the banner and prompts are left out.
On a terminal with line editing available, the history is read from and
appended to `history.txt` in the current directory.

## Limits

The language has no floating-point numbers, no null value and no way to
define functions inside a script; functions come only from the context.