import pytest

from milu.parser import ScriptSyntaxError, parse
from milu.script import Array, Boolean, Call, Identifier, Integer, String, Tuple
from milu.stdlib import (
    Access,
    And,
    BitAnd,
    BitNot,
    BitOr,
    BitXor,
    Divide,
    Equal,
    If,
    Index,
    IsMemberOf,
    Minus,
    Multiply,
    Negative,
    Not,
    Or,
    Plus,
    Scope,
    StringConcat,
    default_context,
)


def ident(name):
    return Identifier(name)


def num(value):
    return Integer(value)


def text(value):
    return String(value)


def array(*items):
    return Array(tuple(items))


def tup(*items):
    return Tuple(tuple(items))


def test_simple_op():
    assert parse("x+1") == Plus.make_call(ident("x"), num(1))


@pytest.mark.parametrize("source", ["x", "\r\n\t x \r\n\t ", " ( ( ( ( x ) ) ) ) "])
def test_root_is_value(source):
    assert parse(source) == ident("x")


def test_operator_priority():
    assert parse("1 && ( 2 ) || 3 == 4") == Or.make_call(
        And.make_call(num(1), num(2)), Equal.make_call(num(3), num(4))
    )
    assert parse("1 ^ 4 & ( 2 | 3 )") == BitXor.make_call(
        num(1), BitAnd.make_call(num(4), BitOr.make_call(num(2), num(3)))
    )


def test_op_8():
    expected = Index.make_call(
        Access.make_call(Call(ident("a"), (ident("b"),)), ident("c")), ident("d")
    )
    assert parse("a(b).c[d]") == expected


def test_op_7():
    expected = Not.make_call(Not.make_call(BitNot.make_call(Boolean(True))))
    assert parse(" ! ! ( ~ true ) ") == expected


def test_op_6():
    expected = Divide.make_call(
        Multiply.make_call(num(1), num(1)), Negative.make_call(num(2))
    )
    assert parse("1 * 1 / -2") == expected


def test_op_5():
    assert parse("1+1-2") == Minus.make_call(Plus.make_call(num(1), num(1)), num(2))


def test_template_string():
    assert parse("`a=${1+1}`") == StringConcat.make_call(
        array(text("a="), Plus.make_call(num(1), num(1)))
    )
    assert parse(r"`a=\${a}`") == StringConcat.make_call(
        array(text("a="), text("$"), text("{a}"))
    )
    assert parse("`a=${`x=${x}`}`") == StringConcat.make_call(
        array(text("a="), StringConcat.make_call(array(text("x="), ident("x"))))
    )


def test_tuple_array():
    source = "[ ( ) , ( ( 1 ) , ) , ( 1 , 2 ) , ( 1 , 2 , ) ]"
    expected = array(
        tup(),
        tup(num(1)),
        tup(num(1), num(2)),
        tup(num(1), num(2)),
    )
    assert parse(source) == expected


def test_branch():
    assert parse("if a then b else if c then d else e") == If.make_call(
        ident("a"), ident("b"), If.make_call(ident("c"), ident("d"), ident("e"))
    )
    nested = If.make_call(
        If.make_call(ident("a"), ident("b"), ident("c")), ident("d"), ident("e")
    )
    assert parse("if if a then b else c then d else e") == nested
    assert parse("(a ? b : c) ? d : e") == nested


@pytest.mark.parametrize("source", ["let a=1;b=2 in a+b", "let a=1;b=2; in a+b"])
def test_scope(source):
    expected = Scope.make_call(
        array(tup(ident("a"), num(1)), tup(ident("b"), num(2))),
        Plus.make_call(ident("a"), ident("b")),
    )
    assert parse(source) == expected


def test_comments():
    source = "if #comments\r\n a /* \r\n /* */then/**/b else c"
    assert parse(source) == If.make_call(ident("a"), ident("b"), ident("c"))
    source = """ [
            " #not a comment ",
            " /* also not a comment " , " */"
        ]"""
    assert parse(source) == array(
        text(" #not a comment "),
        text(" /* also not a comment "),
        text(" */"),
    )


def test_complex():
    source = ' 1 _: [ "test" , 0x1 , 0b10 , 0o3 , false , if xyz == 1 then 2 else 3] '
    expected = IsMemberOf.make_call(
        num(1),
        array(
            text("test"),
            num(1),
            num(2),
            num(3),
            Boolean(False),
            If.make_call(Equal.make_call(ident("xyz"), num(1)), num(2), num(3)),
        ),
    )
    assert parse(source) == expected


def test_keywords_are_case_insensitive():
    assert parse("1 AND 2") == And.make_call(num(1), num(2))
    assert parse("a Or b") == Or.make_call(ident("a"), ident("b"))


def test_integer_forms():
    assert parse("0x1F") == num(31)
    assert parse("0O17") == num(15)
    assert parse("0B101") == num(5)
    assert parse("9223372036854775807") == num(9223372036854775807)


def test_string_escapes():
    assert parse('"a\\tb\\u{41}"') == text("a\tbA")


def test_trailing_terminator_is_accepted():
    assert parse("1+1 ;; \n") == Plus.make_call(num(1), num(1))


def test_identifier_after_keyword_prefix():
    assert parse("letter") == ident("letter")
    assert parse("iffy") == ident("iffy")


def test_access_tuple_by_position():
    assert parse("(1,2).1") == Access.make_call(tup(num(1), num(2)), num(1))


def test_parsed_expression_evaluates():
    value = parse("let a=1;b=2 in a+b").value_of(default_context())
    assert value == num(3)


@pytest.mark.parametrize(
    "source",
    [
        "1 +",
        "[1,2",
        '"unterminated',
        "`${1}",
        "1_000",
        "9223372036854775808",
        "x # trailing comment",
        "(1 2)",
        "",
    ],
)
def test_syntax_errors(source):
    with pytest.raises(ScriptSyntaxError):
        parse(source)


def test_syntax_error_message():
    with pytest.raises(ScriptSyntaxError) as info:
        parse("1 +\n )")
    message = str(info.value)
    assert message.startswith("SyntaxError: ")
    assert "line" in message