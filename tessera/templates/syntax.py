"""
Syntax transpiler - rewrites template tags into Python statements.

A single tokenizing pass recognises the fixed tag vocabulary. Narrow forms
come before the general forms they are a special case of:

    {{{ expr }}}   before   {{ expr }}
    {?= expr ?}    before   {? code ?}

Expressions and conditions are passed through verbatim; the transpiler
never parses them. The generated module body writes output through the
``_write`` callable supplied by the runtime (see ``runtime.py``).
"""

import re
import textwrap
from typing import List, Optional

from .faults import TemplateSyntaxFault


# Non-capturing form, shared with the post-filters to protect tags
TAG_PATTERN = r"\{\{\{.*?\}\}\}|\{\{.*?\}\}|\{\?=.*?\?\}|\{\?.*?\?\}|\{%.*?%\}"
TAG_RE = re.compile(TAG_PATTERN, re.S)

TOKEN_RE = re.compile(
    r"(?P<raw>\{\{\{(?P<raw_expr>.*?)\}\}\})"
    r"|(?P<escaped>\{\{(?P<escaped_expr>.*?)\}\})"
    r"|(?P<echo>\{\?=(?P<echo_expr>.*?)\?\})"
    r"|(?P<code>\{\?(?P<code_body>.*?)\?\})"
    r"|(?P<stmt>\{%(?P<stmt_body>.*?)%\})",
    re.S,
)

STATEMENT_RE = re.compile(r"^(\w+)(.*)$", re.S)
FOREACH_CLAUSE_RE = re.compile(r"^(?P<collection>.*\S)\s+as\s+(?P<target>\S.*)$", re.S)

# Consumed by inheritance and include resolution; leftovers are dropped
NOOP_STATEMENTS = {"extends", "include", "block", "endblock", "yield"}


def _guarded(expr: str) -> str:
    """Wrap ``expr`` so an undefined name, key or attribute evaluates to None."""
    return f"_lookup(lambda: ({expr}))"


class CodeBuilder:
    """Accumulates indented Python source lines."""

    INDENT_STEP = 4

    def __init__(self, indent_level: int = 0):
        self.lines: List[str] = []
        self.indent_level = indent_level
        self._suites: List[int] = []

    def add_line(self, line: str) -> None:
        """Add a line of source at the current indentation."""
        self.lines.append(" " * self.indent_level + line)
        if self._suites:
            self._suites[-1] += 1

    def indent(self) -> None:
        """Open a suite."""
        self.indent_level += self.INDENT_STEP
        self._suites.append(0)

    def dedent(self) -> None:
        """Close a suite, filling it with ``pass`` if nothing was emitted."""
        if self._suites.pop() == 0:
            self.lines.append(" " * self.indent_level + "pass")
        self.indent_level -= self.INDENT_STEP

    def __str__(self) -> str:
        return "\n".join(self.lines) + "\n" if self.lines else ""


class _Construct:
    """Open if / foreach on the transpiler's stack."""

    __slots__ = ("kind", "line", "has_else")

    def __init__(self, kind: str, line: int):
        self.kind = kind
        self.line = line
        self.has_else = False


class Transpiler:
    """
    Template-to-Python transpiler.

    Loop targets are a single name (``items as item``) or a key and an
    item (``d as k, v`` or ``d as k => v``); the latter iterate
    ``.items()`` of mappings and ``enumerate`` of anything else.

    Args:
        allow_raw_code: Emit ``{? code ?}`` blocks; when False they are deleted
    """

    def __init__(self, allow_raw_code: bool = False):
        self.allow_raw_code = allow_raw_code

    def transpile(self, text: str, template: Optional[str] = None) -> str:
        """
        Transpile fully expanded template text into a Python module body.

        Raises:
            TemplateSyntaxFault: Unknown or unbalanced tags, empty expressions
        """
        self._template = template
        self._text = text
        self._code = CodeBuilder()
        self._stack: List[_Construct] = []

        pos = 0
        for match in TOKEN_RE.finditer(text):
            if match.start() > pos:
                self._emit_text(text[pos:match.start()])
            self._emit_tag(match)
            pos = match.end()
        if pos < len(text):
            self._emit_text(text[pos:])

        if self._stack:
            construct = self._stack[-1]
            raise TemplateSyntaxFault(
                f"Unclosed '{construct.kind}'", template, line=construct.line
            )

        return str(self._code)

    # ------------------------------------------------------------------
    # Emitters
    # ------------------------------------------------------------------

    def _emit_text(self, literal: str) -> None:
        self._code.add_line(f"_write({literal!r})")

    def _emit_tag(self, match: re.Match) -> None:
        kind = match.lastgroup
        line = self._line_of(match.start())

        if kind == "raw":
            expr = self._expression(match.group("raw_expr"), line)
            self._code.add_line(f"_write(_text({expr}))")
        elif kind == "escaped":
            expr = self._expression(match.group("escaped_expr"), line)
            self._code.add_line(f"_write(_escape({_guarded(expr)}))")
        elif kind == "echo":
            expr = self._expression(match.group("echo_expr"), line)
            self._code.add_line(f"_write(_text({expr}))")
        elif kind == "code":
            if self.allow_raw_code:
                for code_line in self._code_lines(match.group("code_body")):
                    self._code.add_line(code_line)
        else:
            self._emit_statement(match.group("stmt_body").strip(), line)

    def _emit_statement(self, body: str, line: int) -> None:
        match = STATEMENT_RE.match(body)
        if match is None:
            raise TemplateSyntaxFault(f"Malformed tag '{{% {body} %}}'", self._template, line=line)

        keyword, rest = match.group(1), match.group(2).strip()

        if keyword == "if":
            self._open("if", f"if {self._condition(rest, keyword, line)}:", line)
        elif keyword == "elseif":
            construct = self._expect("if", keyword, line)
            if construct.has_else:
                raise TemplateSyntaxFault("'elseif' after 'else'", self._template, line=line)
            self._code.dedent()
            self._code.add_line(f"elif {self._condition(rest, keyword, line)}:")
            self._code.indent()
        elif keyword == "else":
            construct = self._expect("if", keyword, line)
            if construct.has_else:
                raise TemplateSyntaxFault("Duplicate 'else'", self._template, line=line)
            construct.has_else = True
            self._code.dedent()
            self._code.add_line("else:")
            self._code.indent()
        elif keyword == "endif":
            self._expect("if", keyword, line)
            self._stack.pop()
            self._code.dedent()
        elif keyword == "foreach":
            self._open("foreach", self._foreach_header(rest, line), line)
        elif keyword == "endforeach":
            self._expect("foreach", keyword, line)
            self._stack.pop()
            self._code.dedent()
        elif keyword in NOOP_STATEMENTS:
            return
        else:
            raise TemplateSyntaxFault(f"Unknown tag '{keyword}'", self._template, line=line)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open(self, kind: str, header: str, line: int) -> None:
        self._code.add_line(header)
        self._code.indent()
        self._stack.append(_Construct(kind, line))

    def _expect(self, kind: str, keyword: str, line: int) -> _Construct:
        if not self._stack or self._stack[-1].kind != kind:
            found = self._stack[-1].kind if self._stack else "nothing"
            raise TemplateSyntaxFault(
                f"'{keyword}' does not match open '{found}'", self._template, line=line
            )
        return self._stack[-1]

    def _condition(self, rest: str, keyword: str, line: int) -> str:
        if not rest:
            raise TemplateSyntaxFault(f"'{keyword}' requires a condition", self._template, line=line)
        return _guarded(rest)

    def _foreach_header(self, rest: str, line: int) -> str:
        if not (rest.startswith("(") and rest.endswith(")")):
            raise TemplateSyntaxFault(
                "'foreach' clause must be parenthesized", self._template, line=line
            )

        match = FOREACH_CLAUSE_RE.match(rest[1:-1].strip())
        if match is None:
            raise TemplateSyntaxFault(
                "'foreach' clause must read '(collection as item)'", self._template, line=line
            )

        collection, target = match.group("collection"), match.group("target").strip()
        for separator in ("=>", ","):
            if separator in target:
                key, item = (part.strip() for part in target.split(separator, 1))
                self._check_targets(line, key, item)
                return f"for {key}, {item} in _pairs({_guarded(collection)}):"

        self._check_targets(line, target)
        return f"for {target} in _iterate({_guarded(collection)}):"

    def _check_targets(self, line: int, *names: str) -> None:
        # Only plain names bind; tuple unpacking would be read as key, item
        for name in names:
            if not name.isidentifier():
                raise TemplateSyntaxFault(
                    f"'foreach' target must be a name or 'key, item', got {name!r}",
                    self._template,
                    line=line,
                )

    def _expression(self, expr: str, line: int) -> str:
        expr = expr.strip()
        if not expr:
            raise TemplateSyntaxFault("Empty expression", self._template, line=line)
        return expr

    def _code_lines(self, body: str) -> List[str]:
        code = textwrap.dedent(body).strip("\n")
        return [code_line.rstrip() for code_line in code.split("\n") if code_line.strip()]

    def _line_of(self, offset: int) -> int:
        return self._text.count("\n", 0, offset) + 1


def transpile(text: str, allow_raw_code: bool = False, template: Optional[str] = None) -> str:
    """Transpile ``text`` with a fresh Transpiler."""
    return Transpiler(allow_raw_code=allow_raw_code).transpile(text, template)
