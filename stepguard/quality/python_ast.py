"""
StepGuard -- Python Step Binding Extraction (AST tier)

Finds pytest-bdd and behave step bindings with the stdlib `ast` module
and extracts BindingBody facts from each function body.

A binding is any function (sync or async) decorated with given / when /
then / step, bare or called, plain or attribute access (`@given(...)`,
`@behave.then(...)`, `@step`). The step text is the first string
argument of the decorator, or of a parser wrapper such as
`parsers.parse("...")`.

Placeholders that do not count as statements: `pass`, any bare constant
expression (docstrings, `...`), and a bare `return` / `return None`.
Statements after the first top-level return or raise are unreachable.
"""

from __future__ import annotations

import ast
from collections.abc import Iterable
from pathlib import Path

from stepguard.quality.types import BindingBody, StepBinding, StepKind

_STEP_DECORATORS = frozenset({"given", "when", "then", "step"})


# -- AST Helpers --------------------------------------------------------------


def _call_name(func: ast.expr) -> str:
    if isinstance(func, ast.Name):
        return func.id
    if isinstance(func, ast.Attribute):
        return func.attr
    return ""


def _literal_truth(node: ast.expr) -> bool:
    """True when `node` is a literal whose truth value is fixed and true."""
    if isinstance(node, ast.Constant):
        return bool(node.value)
    if isinstance(node, ast.UnaryOp) and isinstance(node.op, ast.Not):
        return isinstance(node.operand, ast.Constant) and not node.operand.value
    if isinstance(node, ast.Compare) and isinstance(node.left, ast.Constant):
        if not all(isinstance(op, (ast.Eq, ast.Is)) for op in node.ops):
            return False
        values = [node.left, *node.comparators]
        return all(
            isinstance(v, ast.Constant) and v.value == node.left.value for v in values
        )
    return False


def _is_literal_falsy(node: ast.expr) -> bool:
    return isinstance(node, ast.Constant) and not node.value


def _tautological_call(name: str, args: list[ast.expr]) -> bool:
    lowered = name.lower()
    if not args:
        return False
    if lowered.endswith("true"):
        return _literal_truth(args[0])
    if lowered.endswith("false"):
        return _is_literal_falsy(args[0])
    if "equal" in lowered and len(args) >= 2:
        first, second = args[0], args[1]
        return (
            isinstance(first, ast.Constant)
            and isinstance(second, ast.Constant)
            and first.value == second.value
        )
    if len(args) == 1 and not any(w in lowered for w in ("false", "not", "none", "raises")):
        return _literal_truth(args[0])
    return False


def _is_placeholder(stmt: ast.stmt) -> bool:
    if isinstance(stmt, ast.Pass):
        return True
    if isinstance(stmt, ast.Expr) and isinstance(stmt.value, ast.Constant):
        return True
    if isinstance(stmt, ast.Return):
        return stmt.value is None or (
            isinstance(stmt.value, ast.Constant) and stmt.value.value is None
        )
    return False


def _reachable(body: Iterable[ast.stmt]) -> list[ast.stmt]:
    reachable: list[ast.stmt] = []
    for stmt in body:
        reachable.append(stmt)
        if isinstance(stmt, (ast.Return, ast.Raise)):
            break
    return reachable


def body_facts(
    func: ast.FunctionDef | ast.AsyncFunctionDef,
    assertion_keywords: Iterable[str],
) -> BindingBody:
    keywords = tuple(assertion_keywords)
    statements = _reachable(func.body)

    assertions = 0
    tautologies = 0
    raises = False
    for stmt in statements:
        for node in ast.walk(stmt):
            if isinstance(node, ast.Assert):
                assertions += 1
                if _literal_truth(node.test):
                    tautologies += 1
            elif isinstance(node, ast.Call):
                name = _call_name(node.func)
                if name and any(kw in name.lower() for kw in keywords):
                    assertions += 1
                    if _tautological_call(name, node.args):
                        tautologies += 1
            elif isinstance(node, ast.Raise):
                raises = True

    return BindingBody(
        statement_count=sum(1 for s in statements if not _is_placeholder(s)),
        assertion_count=assertions,
        tautology_count=tautologies,
        raises=raises,
    )


def _decorator_step(decorator: ast.expr) -> tuple[StepKind, str] | None:
    """(kind, step text) for a step decorator, else None."""
    args: list[ast.expr] = []
    if isinstance(decorator, ast.Call):
        name = _call_name(decorator.func)
        args = decorator.args
    else:
        name = _call_name(decorator)

    if name.lower() not in _STEP_DECORATORS:
        return None

    text = ""
    if args:
        first = args[0]
        # pytest-bdd parser wrappers: @given(parsers.parse("..."))
        if isinstance(first, ast.Call) and first.args:
            first = first.args[0]
        if isinstance(first, ast.Constant):
            text = str(first.value)
    return StepKind.from_keyword(name), text


class _BindingVisitor(ast.NodeVisitor):
    """Collects every decorated step function, including nested ones."""

    def __init__(self, file: str, assertion_keywords: tuple[str, ...]) -> None:
        self.bindings: list[StepBinding] = []
        self._file = file
        self._keywords = assertion_keywords

    def visit_FunctionDef(self, node: ast.FunctionDef) -> None:
        for decorator in node.decorator_list:
            step = _decorator_step(decorator)
            if step is None:
                continue
            kind, text = step
            self.bindings.append(
                StepBinding(
                    step_kind=kind,
                    step_text=text,
                    function_name=node.name,
                    file=self._file,
                    line=node.lineno,
                    body=body_facts(node, self._keywords),
                )
            )
            break
        self.generic_visit(node)

    visit_AsyncFunctionDef = visit_FunctionDef


def extract_bindings(path: Path, assertion_keywords: Iterable[str]) -> list[StepBinding]:
    """
    Parse one Python file and return its step bindings in line order.

    Raises SyntaxError, UnicodeDecodeError or ValueError when the file
    cannot be parsed; the caller turns that into a PARSE_ERROR finding.
    """
    source = path.read_text(encoding="utf-8")
    tree = ast.parse(source, filename=str(path))
    visitor = _BindingVisitor(str(path), tuple(kw.lower() for kw in assertion_keywords))
    visitor.visit(tree)
    return sorted(visitor.bindings, key=lambda b: b.line)
