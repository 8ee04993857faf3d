import io

import pytest

from milu.parser import ScriptSyntaxError
from milu.repl import evaluate, main, repl, run_source
from milu.script import Integer, ScriptContext, ScriptError, String
from milu.stdlib import default_context


def _eval_text(source, ctx=None):
    value, rtype = evaluate(source, ctx)
    return value, str(rtype)


def test_one_plus_one():
    assert _eval_text("1+1") == (Integer(2), "integer")


def test_to_string():
    assert _eval_text("to_string(100*2)") == (String("200"), "string")


def test_arrays():
    ctx = default_context()
    _, rtype = evaluate("[1,2,3]", ctx)
    assert str(rtype) == "[integer]"
    value, _ = evaluate(
        '[if 1>2||1==1 then 1*1 else 99,2*2,3*3,to_integer("4")][0]', ctx
    )
    assert value == Integer(1)


def test_array_type_mismatch():
    with pytest.raises(ScriptError):
        evaluate('[1,"true",false]')


def test_ctx_chain():
    ctx = ScriptContext(parent=default_context())
    ctx.set("a", Integer(1))
    value, _ = evaluate("a+1", ctx)
    assert value == Integer(2)


def test_scope():
    assert _eval_text("let a=1;b=2 in a+b") == (Integer(3), "integer")


def test_access_tuple():
    assert _eval_text('(1,"2",false).1') == (String("2"), "string")


def test_strcat():
    assert _eval_text(' strcat(["1","2",to_string(3)]) ') == (String("123"), "string")


def test_template():
    assert _eval_text(" `x=\n${to_string(1+2)}` ") == (String("x=\n3"), "string")


def test_evaluate_syntax_error():
    with pytest.raises(ScriptSyntaxError):
        evaluate("1 +")


def test_run_source_prints_value_and_type():
    out, err = io.StringIO(), io.StringIO()
    assert run_source(default_context(), "1+1", out, err) is True
    assert out.getvalue() == "2 : integer\n"
    assert err.getvalue() == ""


def test_run_source_accepts_terminator():
    out, err = io.StringIO(), io.StringIO()
    assert run_source(default_context(), "to_string(3) ;;", out, err) is True
    assert out.getvalue() == '"3" : string\n'


def test_run_source_parser_error():
    out, err = io.StringIO(), io.StringIO()
    assert run_source(default_context(), "(1", out, err) is False
    assert err.getvalue().startswith("parser error: SyntaxError:")
    assert out.getvalue() == ""


def test_run_source_type_error():
    out, err = io.StringIO(), io.StringIO()
    assert run_source(default_context(), "1 + true", out, err) is False
    assert err.getvalue().startswith("type inference error: ")


def test_run_source_undefined_identifier():
    out, err = io.StringIO(), io.StringIO()
    assert run_source(default_context(), "nothing", out, err) is False
    assert err.getvalue() == 'type inference error: "nothing" is undefined\n'


def test_run_source_eval_error():
    out, err = io.StringIO(), io.StringIO()
    assert run_source(default_context(), "1/0", out, err) is False
    assert err.getvalue() == "eval error: attempt to divide by zero\n"


def test_repl_joins_lines_until_terminator(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("1+\n1;;\nto_string(3);;\n"))
    repl(default_context(), interactive=False)
    captured = capsys.readouterr()
    assert captured.out == '2 : integer\n"3" : string\n'


def test_repl_ignores_unterminated_input(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("1+1\n"))
    repl(default_context(), interactive=False)
    assert capsys.readouterr().out == ""


def test_repl_reports_errors_and_continues(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("1 +;;\n2*3;;\n"))
    repl(interactive=False)
    captured = capsys.readouterr()
    assert captured.out == "6 : integer\n"
    assert captured.err.startswith("parser error: ")


def test_main_evaluates_file(tmp_path, capsys):
    script = tmp_path / "expr.milu"
    script.write_text("let a=2;b=3 in a*b", encoding="utf-8")
    assert main([str(script)]) == 0
    assert capsys.readouterr().out == "6 : integer\n"


def test_main_missing_file(tmp_path, capsys):
    assert main([str(tmp_path / "absent.milu")]) == 1
    assert capsys.readouterr().err.startswith("Error: ")


def test_main_version(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["--version"])
    assert exc.value.code == 0
    assert "0.2.1" in capsys.readouterr().out


def test_main_without_file_runs_repl(monkeypatch, capsys):
    monkeypatch.setattr("sys.stdin", io.StringIO("3-1;;\n"))
    assert main([]) == 0
    assert capsys.readouterr().out == "2 : integer\n"