"""A small typed expression language: parser, type checker, evaluator and REPL."""

__version__ = "0.2.1"
__all__ = ["parser", "repl", "script", "stdlib", "strings"]