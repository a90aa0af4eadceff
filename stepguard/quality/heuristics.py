"""
StepGuard -- Heuristic Step Binding Scanner (regex tier)

Used for every language without a structural parser. Each language is a
ScannerRules entry: how a step registration looks, how its body is
delimited, and which lines count as placeholders, assertions,
tautologies and raises.

Body delimitation:
  braces  first `{` after the registration (JS/TS: the callback's own
          brace; Go: the inline func or the named handler elsewhere in
          the file), matched while skipping strings and comments
  indent  Python fallback: lines indented deeper than the `def`

When no body can be delimited within `lookahead` lines, the text up to
the next registration is used instead.

Body facts are line-based: one statement per non-empty code line, one
assertion per line that calls an assertion keyword or matches a
language assertion pattern. Everything after a top-level return or
throw is unreachable and ignored.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import structlog

from stepguard.quality.types import BindingBody, StepBinding, StepKind

logger = structlog.get_logger(system="stepguard.quality.heuristics")


def _rx(*patterns: str, flags: int = 0) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, flags) for p in patterns)


@dataclass(frozen=True)
class ScannerRules:
    language: str
    extensions: tuple[str, ...]
    registration: re.Pattern[str]
    body_style: str = "braces"             # "braces" | "indent"
    quote_chars: str = "\"'"
    opens_at_match_end: bool = False       # registration regex ends on the body's `{`
    named_handlers: bool = False           # Go: s.Step(`...`, handlerName)
    placeholders: tuple[re.Pattern[str], ...] = ()
    assertions: tuple[re.Pattern[str], ...] = ()
    tautologies: tuple[re.Pattern[str], ...] = ()
    raises: tuple[re.Pattern[str], ...] = ()
    terminators: re.Pattern[str] = field(default=re.compile(r"^(?:return|throw)\b"))


# ── Language Rules ───────────────────────────────────────────────────────────

_BRACE_PLACEHOLDERS = _rx(
    r"^return\s*;?$",
    r"^return\s+(?:null|undefined|nil)\s*;?$",
    r"^return\s+['\"]pending['\"]\s*;?$",
)

JAVASCRIPT_RULES = ScannerRules(
    language="javascript",
    extensions=(".js", ".jsx", ".mjs", ".cjs"),
    registration=re.compile(
        r"\b(?P<kind>Given|When|Then)\s*\(\s*(?P<q>['\"`/])(?P<text>[\s\S]*?)(?P=q)\s*,\s*"
        r"(?:async\s+)?(?:function\s*\w*\s*\([^)]*\)|(?:\([^)]*\)|\w+)(?:\s*:\s*[^=]+?)?\s*=>)\s*\{"
    ),
    quote_chars="\"'`",
    opens_at_match_end=True,
    placeholders=_BRACE_PLACEHOLDERS,
    assertions=_rx(
        r"\bexpect\s*\(",
        r"\bassert\b",
        r"\bshould\b",
        r"\.to\.\w+",
        r"\.toEqual\b",
        r"\.toBe\b",
        r"\.toHaveBeenCalled",
        r"\.toThrow",
        r"\.rejects",
        r"\.resolves",
    ),
    tautologies=_rx(
        r"expect\s*\(\s*true\s*\)\s*\.\s*toBe\s*\(\s*true\s*\)",
        r"expect\s*\(\s*1\s*\)\s*\.\s*toBe\s*\(\s*1\s*\)",
        r"expect\s*\(\s*true\s*\)\s*\.\s*toBeTruthy\s*\(\s*\)",
        r"expect\s*\(\s*false\s*\)\s*\.\s*toBe(?:Falsy\s*\(\s*|\s*\(\s*false\s*)\)",
        r"assert\s*\.\s*ok\s*\(\s*true\s*\)",
        r"\bassert\s*\(\s*true\s*\)",
        r"assert\s*\.\s*(?:strictEqual|equal|deepEqual)\s*\(\s*(true|\d+)\s*,\s*\1\s*\)",
    ),
    raises=_rx(r"\bthrow\b"),
)

TYPESCRIPT_RULES = ScannerRules(
    language="typescript",
    extensions=(".ts", ".tsx", ".mts", ".cts"),
    registration=JAVASCRIPT_RULES.registration,
    quote_chars=JAVASCRIPT_RULES.quote_chars,
    opens_at_match_end=True,
    placeholders=JAVASCRIPT_RULES.placeholders,
    assertions=JAVASCRIPT_RULES.assertions,
    tautologies=JAVASCRIPT_RULES.tautologies,
    raises=JAVASCRIPT_RULES.raises,
)

GO_RULES = ScannerRules(
    language="go",
    extensions=(".go",),
    registration=re.compile(r"^[ \t]*(?:\w+\.)+(?P<kind>Step|Given|When|Then)\s*\(", re.MULTILINE),
    quote_chars="\"'`",
    named_handlers=True,
    placeholders=_rx(
        r"^return\s*$",
        r"^return\s+nil$",
        r"^return\s+(?:\w+\s*,\s*)?nil$",
        r"^return\s+godog\.ErrPending$",
    ),
    assertions=_rx(r"\b(?:assert|require)\.\w+\s*\("),
    tautologies=_rx(
        r"\b(?:assert|require)\.True\s*\(\s*\w+\s*,\s*true\s*[,)]",
        r"\b(?:assert|require)\.False\s*\(\s*\w+\s*,\s*false\s*[,)]",
        r"\b(?:assert|require)\.Equal\s*\(\s*\w+\s*,\s*(true|\d+)\s*,\s*\1\s*[,)]",
    ),
    raises=_rx(
        r"\bpanic\s*\(",
        r"\b(?:fmt\.Errorf|errors\.New)\s*\(",
        r"\bt\.(?:Error|Errorf|Fatal|Fatalf|Fail|FailNow)\s*\(",
    ),
    terminators=re.compile(r"^(?:return|panic)\b"),
)

JAVA_RULES = ScannerRules(
    language="java",
    extensions=(".java",),
    registration=re.compile(r"@(?P<kind>Given|When|Then|And|But)\s*\("),
    placeholders=(
        *_BRACE_PLACEHOLDERS,
        re.compile(r"^throw\s+new\s+(?:[\w.]+\.)?PendingException\s*\([^)]*\)\s*;$"),
    ),
    assertions=_rx(r"^assert\b", r"\bAssert(?:ions)?\.\w+\s*\(", r"\bfail\s*\("),
    tautologies=_rx(
        r"\bassertTrue\s*\(\s*true\s*\)",
        r"\bassertFalse\s*\(\s*false\s*\)",
        r"\bassertEquals\s*\(\s*(true|\d+)\s*,\s*\1\s*\)",
        r"\bassertThat\s*\(\s*true\s*\)\s*\.\s*isTrue\s*\(\s*\)",
        r"^assert\s+true\s*;",
    ),
    raises=_rx(r"\bthrow\b", r"\bfail\s*\("),
)

RUST_RULES = ScannerRules(
    language="rust",
    extensions=(".rs",),
    registration=re.compile(r"#\[(?P<kind>given|when|then)\s*\("),
    quote_chars="\"",
    placeholders=_rx(r"^return\s*;?$", r"^(?:return\s+)?Ok\s*\(\s*\(\s*\)\s*\)\s*;?$"),
    assertions=_rx(r"\bassert(?:_eq|_ne)?!\s*\("),
    tautologies=_rx(
        r"\bassert!\s*\(\s*true\s*[,)]",
        r"\bassert!\s*\(\s*!\s*false\s*[,)]",
        r"\bassert_eq!\s*\(\s*(true|\d+)\s*,\s*\1\s*[,)]",
    ),
    raises=_rx(r"\bpanic!\s*\(", r"\bbail!\s*\(", r"\bunreachable!\s*\(", r"\bErr\s*\("),
    terminators=re.compile(r"^(?:return\b|panic!)"),
)

CSHARP_RULES = ScannerRules(
    language="csharp",
    extensions=(".cs",),
    registration=re.compile(r"\[(?P<kind>Given|When|Then)\s*\("),
    placeholders=(
        *_BRACE_PLACEHOLDERS,
        re.compile(r"^return\s+Task\.CompletedTask\s*;$"),
        re.compile(r"^throw\s+new\s+PendingStepException\s*\([^)]*\)\s*;$"),
    ),
    assertions=_rx(r"\bAssert\.\w+\s*\(", r"\.Should\s*\(\s*\)"),
    tautologies=_rx(
        r"\bAssert\.(?:True|IsTrue)\s*\(\s*true\s*\)",
        r"\bAssert\.(?:False|IsFalse)\s*\(\s*false\s*\)",
        r"\bAssert\.(?:Equal|AreEqual)\s*\(\s*(true|\d+)\s*,\s*\1\s*\)",
        r"\btrue\s*\.\s*Should\s*\(\s*\)\s*\.\s*BeTrue\s*\(\s*\)",
    ),
    raises=_rx(r"\bthrow\b", r"\bAssert\.Fail\s*\("),
)

PYTHON_RULES = ScannerRules(
    language="python",
    extensions=(".py",),
    registration=re.compile(
        r"^[ \t]*@(?:\w+\.)*(?P<kind>given|when|then|step)\b", re.MULTILINE,
    ),
    body_style="indent",
    placeholders=_rx(
        r"^pass$",
        r"^\.\.\.$",
        r"^[rbuRBU]*(['\"]).*\1$",
        r"^return(?:\s+None)?$",
    ),
    assertions=_rx(r"^assert\b"),
    tautologies=_rx(
        r"^assert\s+(?:True|1|not\s+False|not\s+0)\s*(?:,|$)",
        r"\bassert_?[Tt]rue\s*\(\s*True\s*\)",
    ),
    raises=_rx(r"^raise\b"),
    terminators=re.compile(r"^(?:return|raise)\b"),
)

GENERIC_RULES = ScannerRules(
    language="generic",
    extensions=(),
    registration=re.compile(r"\b(?P<kind>Given|When|Then)\s*\("),
    placeholders=_BRACE_PLACEHOLDERS,
    raises=_rx(r"\bthrow\b"),
)


# ── Source Helpers ───────────────────────────────────────────────────────────

_CALL_NAME = re.compile(r"([A-Za-z_]\w*)\s*!?\s*\(")
_QUOTED = re.compile(r"([\"'`])((?:\\.|(?!\1).)*)\1")
_BRACE_ONLY = re.compile(r"^[{}()\[\];,\s]*$")
_PY_DEF = re.compile(r"^(?P<indent>[ \t]*)(?:async\s+)?def\s+(?P<name>\w+)")
_PY_INLINE_BODY = re.compile(r"\)\s*(?:->\s*[^:]+)?:\s*(?P<inline>\S.*)$")
_PY_DOCSTRING = re.compile(r"^\s*[rbuRBU]*(\"\"\"|''')[\s\S]*?\1")
_GO_FUNC = re.compile(r"\bfunc\b")
_GO_HANDLER_ARG = re.compile(r",\s*(?:[\w]+\.)*(?P<name>\w+)\s*\)\s*;?\s*$")


def _code_chars(text: str, start: int, end: int, quotes: str) -> Iterator[int]:
    """Indexes of characters in text[start:end] outside strings and comments."""
    i = start
    while i < end:
        ch = text[i]
        if ch in quotes:
            i = _skip_string(text, i, end)
            continue
        if text.startswith("//", i):
            newline = text.find("\n", i)
            i = end if newline == -1 else newline
            continue
        if text.startswith("/*", i):
            close = text.find("*/", i + 2)
            i = end if close == -1 else close + 2
            continue
        yield i
        i += 1


def _skip_string(text: str, i: int, end: int) -> int:
    quote = text[i]
    j = i + 1
    while j < end:
        c = text[j]
        if c == "\\" and quote != "`":
            j += 2
            continue
        if c == quote:
            return j + 1
        if c == "\n" and quote != "`":
            return j
        j += 1
    return end


def _matching_brace(text: str, open_idx: int, quotes: str) -> int | None:
    depth = 0
    for i in _code_chars(text, open_idx, len(text), quotes):
        if text[i] == "{":
            depth += 1
        elif text[i] == "}":
            depth -= 1
            if depth == 0:
                return i
    return None


def _without_comments(text: str, quotes: str) -> str:
    kept: list[str] = []
    i, end = 0, len(text)
    while i < end:
        ch = text[i]
        if ch in quotes:
            j = _skip_string(text, i, end)
            kept.append(text[i:j])
            i = j
        elif text.startswith("//", i):
            newline = text.find("\n", i)
            i = end if newline == -1 else newline
        elif text.startswith("/*", i):
            close = text.find("*/", i + 2)
            comment = text[i:end if close == -1 else close + 2]
            kept.append("\n" * comment.count("\n"))
            i = end if close == -1 else close + 2
        else:
            kept.append(ch)
            i += 1
    return "".join(kept)


def _brace_delta(line: str, quotes: str) -> int:
    delta = 0
    for i in _code_chars(line, 0, len(line), quotes):
        if line[i] == "{":
            delta += 1
        elif line[i] == "}":
            delta -= 1
    return delta


def _line_end(text: str, pos: int) -> int:
    newline = text.find("\n", pos)
    return len(text) if newline == -1 else newline


def _nth_line_end(text: str, pos: int, count: int) -> int:
    end = pos
    for _ in range(count):
        end = _line_end(text, end)
        if end >= len(text):
            return len(text)
        end += 1
    return end


# ── Scanner ──────────────────────────────────────────────────────────────────


class HeuristicScanner:
    """Finds step bindings in one file of one language by pattern."""

    def __init__(
        self,
        rules: ScannerRules,
        assertion_keywords: Iterable[str],
        lookahead: int = 30,
    ) -> None:
        self.rules = rules
        self._keywords = tuple(kw.lower() for kw in assertion_keywords)
        self._lookahead = lookahead

    def scan(self, path: Path) -> list[StepBinding]:
        text = path.read_text(encoding="utf-8", errors="replace")
        matches = list(self.rules.registration.finditer(text))
        bindings: list[StepBinding] = []

        for idx, match in enumerate(matches):
            limit = matches[idx + 1].start() if idx + 1 < len(matches) else len(text)
            groups = match.groupdict()
            step_text = groups.get("text") or self._quoted_text(text, match)

            if self.rules.body_style == "indent":
                lines, function_name = self._indent_body(text, match, limit)
            else:
                lines, function_name = self._brace_body(text, match, limit)

            bindings.append(
                StepBinding(
                    step_kind=StepKind.from_keyword(groups["kind"]),
                    step_text=step_text,
                    function_name=function_name,
                    file=str(path),
                    line=text.count("\n", 0, match.start()) + 1,
                    body=self._facts(lines),
                )
            )

        logger.debug("heuristic_scan", file=str(path), language=self.rules.language, steps=len(bindings))
        return bindings

    # ── Body delimitation ────────────────────────────────────────────────

    def _quoted_text(self, text: str, match: re.Match[str]) -> str:
        line = text[match.start():_line_end(text, match.start())]
        quoted = _QUOTED.search(line)
        return quoted.group(2) if quoted else ""

    def _find_open_brace(self, text: str, start: int, end: int) -> int | None:
        for i in _code_chars(text, start, end, self.rules.quote_chars):
            if text[i] == "{":
                return i
        return None

    def _brace_body(
        self, text: str, match: re.Match[str], limit: int,
    ) -> tuple[list[tuple[int, str]], str]:
        rules = self.rules
        function_name = ""
        window_end = min(_nth_line_end(text, match.end(), self._lookahead), len(text))
        open_idx: int | None

        if rules.opens_at_match_end:
            open_idx = match.end() - 1
        elif rules.named_handlers:
            open_idx, function_name = self._go_body_start(text, match, window_end)
        else:
            open_idx = self._find_open_brace(text, _line_end(text, match.end()), min(window_end, limit))

        if open_idx is None:
            return self._brace_lines(text[match.end():limit]), function_name

        close_idx = _matching_brace(text, open_idx, rules.quote_chars)
        body = text[open_idx + 1:close_idx if close_idx is not None else limit]
        return self._brace_lines(body), function_name

    def _go_body_start(
        self, text: str, match: re.Match[str], window_end: int,
    ) -> tuple[int | None, str]:
        line_end = _line_end(text, match.end())
        registration = text[match.end():line_end]

        inline = _GO_FUNC.search(registration)
        if inline is not None:
            return self._find_open_brace(text, match.end() + inline.start(), window_end), ""

        handler = _GO_HANDLER_ARG.search(registration)
        if handler is not None:
            name = handler.group("name")
            definition = re.search(
                rf"\bfunc\s+(?:\([^)]*\)\s*)?{re.escape(name)}\s*\(", text,
            )
            if definition is not None:
                return self._find_open_brace(text, definition.end(), len(text)), name
            return None, name

        return self._find_open_brace(text, line_end, window_end), ""

    def _brace_lines(self, body: str) -> list[tuple[int, str]]:
        """(nesting level, stripped line) pairs; level 0 is the top of the body."""
        quotes = self.rules.quote_chars
        lines: list[tuple[int, str]] = []
        depth = 0
        for raw in _without_comments(body, quotes).splitlines():
            line = raw.strip()
            level = depth
            depth = max(0, depth + _brace_delta(line, quotes))
            if line.startswith("}"):
                level = max(0, level - 1)
            lines.append((level, line))
        return lines

    def _indent_body(
        self, text: str, match: re.Match[str], limit: int,
    ) -> tuple[list[tuple[int, str]], str]:
        all_lines = text.splitlines()
        first = text.count("\n", 0, match.start())
        last = min(first + self._lookahead, len(all_lines))

        definition: re.Match[str] | None = None
        def_idx = first
        for def_idx in range(first, last):
            definition = _PY_DEF.match(all_lines[def_idx])
            if definition is not None:
                break
        if definition is None:
            return [], ""

        def_indent = len(definition.group("indent").expandtabs())
        name = definition.group("name")

        # Multi-line signatures end on the first line ending with ":"
        sig_end = def_idx
        while sig_end < last and not all_lines[sig_end].rstrip().endswith(":"):
            inline = _PY_INLINE_BODY.search(all_lines[sig_end])
            if inline is not None:
                return [(0, inline.group("inline").strip())], name
            sig_end += 1

        body: list[str] = []
        for raw in all_lines[sig_end + 1:]:
            if not raw.strip():
                body.append("")
                continue
            if len(raw) - len(raw.lstrip()) <= def_indent:
                break
            body.append(raw)

        source = _PY_DOCSTRING.sub("", "\n".join(body), count=1)
        code = [ln for ln in source.splitlines() if ln.strip() and not ln.strip().startswith("#")]
        if not code:
            return [], name

        base = len(code[0].expandtabs()) - len(code[0].expandtabs().lstrip())
        lines = [
            (0 if len(ln.expandtabs()) - len(ln.expandtabs().lstrip()) <= base else 1, ln.strip())
            for ln in code
        ]
        return lines, name

    # ── Facts ────────────────────────────────────────────────────────────

    def _matches(self, patterns: tuple[re.Pattern[str], ...], line: str) -> bool:
        return any(p.search(line) for p in patterns)

    def _is_assertion(self, line: str) -> bool:
        if self._matches(self.rules.assertions, line):
            return True
        return any(
            kw in name.lower() for name in _CALL_NAME.findall(line) for kw in self._keywords
        )

    def _facts(self, lines: list[tuple[int, str]]) -> BindingBody:
        rules = self.rules
        statements = assertions = tautologies = 0
        raises = False

        for level, line in lines:
            if not line or _BRACE_ONLY.match(line):
                continue
            terminal = level == 0 and bool(rules.terminators.match(line))
            if not self._matches(rules.placeholders, line):
                statements += 1
                if self._is_assertion(line):
                    assertions += 1
                    if self._matches(rules.tautologies, line):
                        tautologies += 1
                if self._matches(rules.raises, line):
                    raises = True
            if terminal:
                break

        return BindingBody(
            statement_count=statements,
            assertion_count=assertions,
            tautology_count=tautologies,
            raises=raises,
        )


LANGUAGE_RULES: dict[str, ScannerRules] = {
    rules.language: rules
    for rules in (
        PYTHON_RULES,
        JAVASCRIPT_RULES,
        TYPESCRIPT_RULES,
        GO_RULES,
        JAVA_RULES,
        RUST_RULES,
        CSHARP_RULES,
    )
}
