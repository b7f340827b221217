"""Handlebars-style template compiler backed by Jinja2.

Proposal templates are authored with mustache tokens (``{{customerName}}``,
``{{formatCurrency aggregations.grandTotal}}``, ``{{#each lineItems.labor}}``).
The compiler parses that syntax into a small node tree, generates an
equivalent Jinja2 program and renders it in a sandboxed environment.

Template text never enters the Jinja2 source: it is passed to the program
as a list of literal chunks, so the output reproduces it byte for byte.
Paths resolve against data only (mapping keys, list indices and
``length``), never against Python attributes.

A malformed token renders an inline diagnostic where it stands; the rest
of the page is unaffected.

The dialect is a subset of Handlebars. Partials (``{{> name}}``), block
parameters (``as |x|``), inverted sections (``{{^name}}``) and custom
block helpers render a diagnostic. Standalone block tags keep their
surrounding whitespace; use ``~`` to strip it.
"""

import json
import logging
import math
import re
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from functools import partial
from typing import Any

from jinja2 import ChainableUndefined, TemplateError, TemplateSyntaxError, Undefined
from jinja2.sandbox import SandboxedEnvironment
from markupsafe import Markup, escape

from proposal_engine.core.config import Settings, get_settings
from proposal_engine.interfaces.template import (
    BaseTemplateCompiler,
    CompilationError,
    TemplateLimitError,
)
from proposal_engine.strategies.template_engine.helpers import (
    DEFAULT_HELPERS,
    format_currency,
    format_date,
)
from proposal_engine.strategies.template_engine.models import PROTECTED_TOKEN_NAMES

logger = logging.getLogger(__name__)

BLOCK_HELPERS = frozenset({"each", "if", "unless", "with"})

_EXPR_TOKEN = re.compile(
    r"""\s*(?:
        (?P<lparen>\()
      | (?P<rparen>\))
      | "(?P<dq>(?:[^"\\]|\\.)*)"
      | '(?P<sq>(?:[^'\\]|\\.)*)'
      | (?P<key>[A-Za-z_][A-Za-z0-9_]*)=
      | (?P<word>(?:\[[^\]]*\]|[^\s()="'\[])+)
    )""",
    re.VERBOSE,
)
_NUMBER = re.compile(r"-?\d+(?:\.\d+)?")
_SEGMENT = re.compile(r"\[([^\]]*)\]|([^./\[\]]+)")
_LITERALS = {"true": "true", "false": "false", "null": "none", "undefined": "none"}


def encode_braces(html: str) -> str:
    """Encode ``{`` and ``}`` as character references."""
    return html.replace("{", "&#123;").replace("}", "&#125;")


def render_diagnostic(error: CompilationError) -> Markup:
    """Render an inline diagnostic fragment for a failed token."""
    message = encode_braces(str(escape(str(error))))
    return Markup(
        '<div class="template-error" style="color: #b91c1c; padding: 8px; '
        'border: 1px solid #fca5a5; border-radius: 4px; background: #fef2f2;">'
        f"<strong>Error Rendering Section:</strong><br/>{message}</div>"
    )


class TemplateText(Markup):
    """Literal template text, written to the output untouched."""


class HelperFailure(Markup):
    """Diagnostic returned in place of a failed helper call."""


def _display(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (list, tuple)):
        return ",".join("" if v is None else _display(v) for v in value)
    if isinstance(value, Mapping):
        return "[object Object]"
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _finalize(value: Any) -> Any:
    """Turn an output value into HTML that cannot contain a token."""
    if isinstance(value, TemplateText):
        return value
    if value is None or isinstance(value, Undefined):
        return Markup("")
    html = value if isinstance(value, Markup) else escape(_display(value))
    return Markup(encode_braces(str(html)))


def _plain(value: Any) -> Any:
    return None if isinstance(value, Undefined) else value


def _truthy(value: Any) -> bool:
    """Handlebars truthiness: empty lists and ``0`` are falsy, objects are not."""
    if value is None or isinstance(value, (Undefined, HelperFailure)):
        return False
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0 and not math.isnan(value)
    if isinstance(value, (str, list, tuple)):
        return len(value) > 0
    return True


def _lookup(value: Any, segment: str) -> Any:
    """Resolve one path segment against data, never attributes."""
    if isinstance(value, Mapping):
        return value.get(segment)
    if isinstance(value, (list, tuple, str)):
        if segment == "length":
            return len(value)
        if segment.isdigit() and not isinstance(value, str) and int(segment) < len(value):
            return value[int(segment)]
    return None


def _each(value: Any) -> list[tuple[Any, Any]]:
    """Return ``(key, item)`` pairs for ``#each``."""
    if isinstance(value, Mapping):
        return list(value.items())
    if isinstance(value, (list, tuple)):
        return list(enumerate(value))
    return []


# =============================================================================
# Syntax tree
# =============================================================================


@dataclass
class _Literal:
    source: str


@dataclass
class _Path:
    segments: list[str]
    ups: int = 0
    data: str | None = None
    explicit_this: bool = False

    @property
    def simple_name(self) -> str | None:
        if self.ups or self.data or self.explicit_this or len(self.segments) != 1:
            return None
        return self.segments[0]


@dataclass
class _Call:
    name: str
    args: list[Any]
    kwargs: dict[str, Any]


@dataclass
class _Text:
    value: str


@dataclass
class _Error:
    error: CompilationError


@dataclass
class _Output:
    expr: Any
    raw: bool
    token: str = ""


@dataclass
class _Block:
    name: str
    param: Any
    token: str
    parent: list[Any]
    body: list[Any] = field(default_factory=list)
    inverse: list[Any] | None = None
    chained: bool = False
    over_limit: bool = False


@dataclass
class _Scope:
    var: str
    key_var: str | None = None


@dataclass
class Program:
    """A translated page: Jinja2 source plus the literal chunks it prints."""

    source: str
    texts: list[Markup]
    errors: list[CompilationError]


# =============================================================================
# Expression parsing
# =============================================================================


class _ExpressionParser:
    """Parses the inside of one mustache into literals, paths and calls."""

    def __init__(self, text: str, token: str, helpers: Iterable[str]) -> None:
        self._token = token
        self._helpers = set(helpers)
        self._items: list[tuple[str, str]] = []
        pos = 0
        text = text.strip()
        while pos < len(text):
            match = _EXPR_TOKEN.match(text, pos)
            if match is None or match.end() == pos:
                raise CompilationError(f"Unexpected character in {token}", token)
            kind = match.lastgroup
            self._items.append((kind, match.group(kind)))
            pos = match.end()
            while pos < len(text) and text[pos].isspace():
                pos += 1
        self._pos = 0

    def _fail(self, message: str) -> CompilationError:
        return CompilationError(f"{message} in {self._token}", self._token)

    def _peek(self) -> tuple[str, str] | None:
        return self._items[self._pos] if self._pos < len(self._items) else None

    def _next(self) -> tuple[str, str]:
        item = self._peek()
        if item is None:
            raise self._fail("Unexpected end of expression")
        self._pos += 1
        return item

    def parse_all(self) -> tuple[list[Any], dict[str, Any]]:
        args, kwargs = self._parse_terms(inside_parens=False)
        if self._peek() is not None:
            raise self._fail("Unexpected ')'")
        return args, kwargs

    def _parse_terms(self, inside_parens: bool) -> tuple[list[Any], dict[str, Any]]:
        args: list[Any] = []
        kwargs: dict[str, Any] = {}
        while (item := self._peek()) is not None:
            kind, value = item
            if kind == "rparen":
                if not inside_parens:
                    raise self._fail("Unexpected ')'")
                break
            if kind == "key":
                self._next()
                kwargs[value] = self._parse_term()
                continue
            if kwargs:
                raise self._fail("Positional argument after hash argument")
            args.append(self._parse_term())
        return args, kwargs

    def _parse_term(self) -> Any:
        kind, value = self._next()
        if kind == "lparen":
            head_kind, name = self._next()
            if head_kind != "word" or name not in self._helpers:
                raise self._fail(f"Missing helper: {name!r}")
            args, kwargs = self._parse_terms(inside_parens=True)
            if self._next()[0] != "rparen":
                raise self._fail("Unclosed subexpression")
            return _Call(name, args, kwargs)
        if kind in ("dq", "sq"):
            unquoted = value.replace('\\"', '"').replace("\\'", "'")
            return _Literal(json.dumps(unquoted))
        if kind == "word":
            if value in _LITERALS:
                return _Literal(_LITERALS[value])
            if _NUMBER.fullmatch(value):
                return _Literal(self._number(value))
            return self._parse_path(value)
        raise self._fail(f"Unexpected {value!r}")

    def _number(self, text: str) -> str:
        number = float(text) if "." in text else int(text)
        if isinstance(number, float) and not math.isfinite(number):
            raise self._fail(f"Number out of range {text!r}")
        return repr(number)

    def _parse_path(self, word: str) -> _Path:
        text = word
        data = None
        if text.startswith("@"):
            text = text[1:]
            data = "data"
        ups = 0
        while text.startswith("../"):
            ups += 1
            text = text[3:]
        explicit_this = False
        if text in ("this", "."):
            return _Path([], ups=ups, explicit_this=True)
        if text.startswith("./"):
            explicit_this = True
            text = text[2:]

        segments = self._split_segments(text)
        if segments and segments[0] == "this" and not word.startswith("["):
            explicit_this = True
            segments = segments[1:]

        if data:
            name, rest = segments[0], segments[1:]
            if name == "root":
                return _Path(rest, data="root")
            if rest:
                raise self._fail(f"Unsupported data path @{'.'.join(segments)}")
            return _Path([], data=name)
        return _Path(segments, ups=ups, explicit_this=explicit_this)

    def _split_segments(self, text: str) -> list[str]:
        segments: list[str] = []
        pos = 0
        while pos < len(text):
            match = _SEGMENT.match(text, pos)
            if match is None:
                raise self._fail(f"Invalid path {text!r}")
            segments.append(match.group(1) if match.group(1) is not None else match.group(2))
            pos = match.end()
            if pos < len(text):
                if text[pos] not in "./" or pos + 1 == len(text):
                    raise self._fail(f"Invalid path {text!r}")
                pos += 1
        if not segments:
            raise self._fail("Empty path")
        return segments


# =============================================================================
# Translation
# =============================================================================


class _Translator:
    """Translates one page of mustache source into a Jinja2 program."""

    def __init__(
        self,
        helpers: Iterable[str],
        max_tokens: int,
        max_depth: int,
        check: Callable[[str], None],
    ) -> None:
        self._helpers = set(helpers)
        self._max_tokens = max_tokens
        self._max_depth = max_depth
        self._check = check
        self._texts: list[Markup] = []
        self._errors: list[CompilationError] = []
        self._ids = 0

    def translate(self, source: str) -> Program:
        nodes = self._parse(source)
        out: list[str] = []
        self._emit(nodes, [_Scope("_root")], out)
        return Program("".join(out), self._texts, self._errors)

    # -- parsing -------------------------------------------------------------

    def _parse(self, source: str) -> list[Any]:
        root: list[Any] = []
        stack: list[_Block] = []
        strip_next = False
        count = 0
        pos = 0

        def current() -> list[Any]:
            if not stack:
                return root
            top = stack[-1]
            return top.inverse if top.inverse is not None else top.body

        def add_text(text: str) -> None:
            nonlocal strip_next
            if strip_next:
                text = text.lstrip()
                strip_next = False
            if text:
                current().append(_Text(text))

        def add_error(error: CompilationError) -> None:
            self._errors.append(error)
            current().append(_Error(error))

        while pos < len(source):
            start = source.find("{{", pos)
            if start < 0:
                add_text(source[pos:])
                break

            if start > pos and source[start - 1] == "\\":
                add_text(source[pos:start - 1])
                end = source.find("}}", start + 2)
                end = len(source) if end < 0 else end + 2
                add_text(source[start:end])
                pos = end
                continue

            add_text(source[pos:start])
            strip_next = False

            count += 1
            if count > self._max_tokens:
                add_error(TemplateLimitError(
                    f"Token limit of {self._max_tokens} exceeded; the rest of the page is not interpreted"
                ))
                add_text(source[start:])
                break

            if source.startswith("{{!--", start):
                end = source.find("--}}", start + 5)
                close = 4
            elif source.startswith("{{{", start):
                end = source.find("}}}", start + 3)
                close = 3
            else:
                end = source.find("}}", start + 2)
                close = 2

            if end < 0:
                add_error(CompilationError(f"Unclosed mustache near {source[start:start + 40]}"))
                add_text(source[start:])
                break

            token = source[start:end + close]
            pos = end + close

            if token.startswith("{{!"):
                continue
            if token.startswith("{{{"):
                self._add_output(token[3:-3], token, raw=True, append=current().append, on_error=add_error)
                continue

            inner = token[2:-2]
            if inner.startswith("~"):
                inner = inner[1:]
                siblings = current()
                if siblings and isinstance(siblings[-1], _Text):
                    siblings[-1].value = siblings[-1].value.rstrip()
            if inner.endswith("~"):
                inner = inner[:-1]
                strip_next = True
            inner = inner.strip()

            try:
                if inner.startswith("#"):
                    self._open_block(inner[1:], token, stack, current())
                elif inner.startswith("/"):
                    self._close_block(inner[1:].strip(), token, stack)
                elif inner == "^" or inner == "else" or inner.startswith("else "):
                    self._else(inner, token, stack)
                elif inner.startswith(">") or inner.startswith("^"):
                    raise CompilationError(f"Unsupported tag {token}", token)
                elif inner.startswith("&"):
                    self._add_output(inner[1:], token, raw=True, append=current().append, on_error=add_error)
                else:
                    self._add_output(inner, token, raw=False, append=current().append, on_error=add_error)
            except CompilationError as e:
                add_error(e)

        while stack:
            block = stack.pop()
            index = next(i for i, node in enumerate(block.parent) if node is block)
            spliced = block.body + (block.inverse or [])
            if not block.chained:
                error = CompilationError(f"Unclosed block {block.token}", block.token)
                self._errors.append(error)
                spliced = [_Error(error)] + spliced
            block.parent[index:index + 1] = spliced

        return root

    def _add_output(
        self,
        text: str,
        token: str,
        raw: bool,
        append: Callable[[Any], None],
        on_error: Callable[[CompilationError], None],
    ) -> None:
        try:
            append(_Output(self._parse_mustache(text, token), raw, token))
        except CompilationError as e:
            on_error(e)

    def _parse_mustache(self, text: str, token: str) -> Any:
        args, kwargs = _ExpressionParser(text, token, self._helpers).parse_all()
        if not args:
            raise CompilationError(f"Empty expression {token}", token)
        head = args[0]
        if isinstance(head, _Path) and head.simple_name in self._helpers:
            return _Call(head.simple_name, args[1:], kwargs)
        if len(args) > 1 or kwargs:
            name = head.simple_name if isinstance(head, _Path) else None
            raise CompilationError(f"Missing helper: {name!r} in {token}", token)
        return head

    def _block_param(self, text: str, token: str) -> Any:
        args, kwargs = _ExpressionParser(text, token, self._helpers).parse_all()
        if len(args) != 1 or kwargs:
            raise CompilationError(f"Block helpers take exactly one argument in {token}", token)
        return args[0]

    def _open_block(self, inner: str, token: str, stack: list[_Block], siblings: list[Any]) -> None:
        name, _, rest = inner.partition(" ")
        if name not in BLOCK_HELPERS:
            raise CompilationError(f"Unknown block helper {name!r} in {token}", token)
        if " as |" in rest:
            raise CompilationError(f"Block parameters are not supported in {token}", token)
        param = self._block_param(rest, token)
        depth = sum(1 for frame in stack if not frame.chained) + 1
        block = _Block(name, param, token, parent=siblings, over_limit=depth > self._max_depth)
        siblings.append(block)
        stack.append(block)

    def _else(self, inner: str, token: str, stack: list[_Block]) -> None:
        if not stack:
            raise CompilationError(f"{token} outside of a block", token)
        top = stack[-1]
        if top.inverse is not None:
            raise CompilationError(f"Duplicate {token}", token)
        top.inverse = []
        chain = inner[len("else"):].strip() if inner.startswith("else") else ""
        if chain:
            name, _, rest = chain.partition(" ")
            if name not in BLOCK_HELPERS:
                raise CompilationError(f"Unknown block helper {name!r} in {token}", token)
            block = _Block(name, self._block_param(rest, token), token, parent=top.inverse, chained=True)
            top.inverse.append(block)
            stack.append(block)

    def _close_block(self, name: str, token: str, stack: list[_Block]) -> None:
        if not stack:
            raise CompilationError(f"Unexpected closing tag {token}", token)
        index = len(stack) - 1
        while stack[index].chained:
            index -= 1
        head = stack[index]
        if head.name != name:
            raise CompilationError(
                f"{token} does not match {head.token}", token
            )
        del stack[index:]

    # -- code generation -----------------------------------------------------

    def _literal(self, text: Markup) -> str:
        self._texts.append(text)
        return f"{{{{ _text[{len(self._texts) - 1}] }}}}"

    def _next_id(self) -> int:
        self._ids += 1
        return self._ids

    def _diagnostic(self, error: CompilationError) -> str:
        self._errors.append(error)
        return self._literal(TemplateText(render_diagnostic(error)))

    def _checked_expr(self, node: Any, scopes: list[_Scope], token: str) -> str:
        """Generate an expression, rejecting it here if Jinja2 cannot parse it."""
        expr = self._expr(node, scopes)
        try:
            self._check(expr)
        except TemplateSyntaxError as e:
            raise CompilationError(f"{e.message} in {token}", token) from e
        return expr

    def _emit(self, nodes: list[Any], scopes: list[_Scope], out: list[str]) -> None:
        for node in nodes:
            if isinstance(node, _Text):
                out.append(self._literal(TemplateText(node.value)))
            elif isinstance(node, _Error):
                out.append(self._literal(TemplateText(render_diagnostic(node.error))))
            elif isinstance(node, _Output):
                try:
                    expr = self._checked_expr(node.expr, scopes, node.token)
                except CompilationError as e:
                    out.append(self._diagnostic(e))
                    continue
                out.append(f"{{{{ ({expr})|safe }}}}" if node.raw else f"{{{{ {expr} }}}}")
            elif isinstance(node, _Block):
                self._emit_block(node, scopes, out)

    def _emit_block(self, block: _Block, scopes: list[_Scope], out: list[str]) -> None:
        if block.over_limit:
            out.append(self._diagnostic(TemplateLimitError(
                f"Block nesting deeper than {self._max_depth} at {block.token}", block.token
            )))
            return

        try:
            value = self._checked_expr(block.param, scopes, block.token)
        except CompilationError as e:
            out.append(self._diagnostic(e))
            return
        n = self._next_id()

        if block.name == "each":
            ctx, key = f"_ctx{n}", f"_key{n}"
            out.append(f"{{% for {key}, {ctx} in _hb_each({value}) %}}")
            self._emit(block.body, scopes + [_Scope(ctx, key)], out)
        elif block.name == "with":
            ctx = f"_ctx{n}"
            out.append(f"{{% with {ctx} = {value} %}}{{% if _hb_truthy({ctx}) %}}")
            self._emit(block.body, scopes + [_Scope(ctx)], out)
        else:
            negate = "not " if block.name == "unless" else ""
            out.append(f"{{% if {negate}_hb_truthy({value}) %}}")
            self._emit(block.body, scopes, out)

        if block.inverse is not None:
            out.append("{% else %}")
            self._emit(block.inverse, scopes, out)

        if block.name == "each":
            out.append("{% endfor %}")
        elif block.name == "with":
            out.append("{% endif %}{% endwith %}")
        else:
            out.append("{% endif %}")

    def _expr(self, node: Any, scopes: list[_Scope]) -> str:
        if isinstance(node, _Literal):
            return node.source
        if isinstance(node, _Call):
            # hash arguments travel as a dict so any key name is valid
            pairs = [
                f"{json.dumps(key)}: {self._expr(val, scopes)}" for key, val in node.kwargs.items()
            ]
            parts = [json.dumps(node.name), "{" + ", ".join(pairs) + "}"]
            parts += [self._expr(arg, scopes) for arg in node.args]
            return f"_hb_call({', '.join(parts)})"
        return self._path(node, scopes)

    def _path(self, path: _Path, scopes: list[_Scope]) -> str:
        if path.data == "root":
            base = "_root"
        elif path.data:
            each_scope = next((s for s in reversed(scopes) if s.key_var), None)
            if each_scope is None:
                return "none"
            return {
                "key": each_scope.key_var,
                "index": "loop.index0",
                "first": "loop.first",
                "last": "loop.last",
            }.get(path.data, "none")
        else:
            base = scopes[max(0, len(scopes) - 1 - path.ups)].var

        for segment in path.segments:
            base = f"_hb_get({base}, {json.dumps(segment)})"
        return base


# =============================================================================
# Compiler
# =============================================================================


class HandlebarsCompiler(BaseTemplateCompiler):
    """Compiles mustache-token templates against a context dictionary.

    Example:
        ```python
        compiler = HandlebarsCompiler()
        html = compiler.compile("Total: {{formatCurrency grandTotal}}", {"grandTotal": 10})
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        protected_names: Iterable[str] = PROTECTED_TOKEN_NAMES,
    ) -> None:
        self._settings = settings or get_settings()
        self._protected = frozenset(protected_names)
        self._helpers: dict[str, Callable[..., Any]] = {}

        self._env = SandboxedEnvironment(
            autoescape=True,
            undefined=ChainableUndefined,
            finalize=_finalize,
            keep_trailing_newline=True,
        )
        self._env.globals.update(
            {
                "_hb_call": self._call_helper,
                "_hb_each": _each,
                "_hb_get": _lookup,
                "_hb_truthy": _truthy,
            }
        )

        for name, func in DEFAULT_HELPERS.items():
            self.register_helper(name, func)
        self.register_helper(
            "formatCurrency", partial(format_currency, symbol=self._settings.currency_symbol)
        )
        self.register_helper(
            "formatDate", partial(format_date, default_format=self._settings.date_format)
        )

        logger.info(f"HandlebarsCompiler initialized: helpers_registered={len(self._helpers)}")

    @property
    def helpers(self) -> tuple[str, ...]:
        return tuple(self._helpers)

    def register_helper(self, name: str, func: Callable[..., Any]) -> None:
        """Register a helper under ``name``.

        Raises:
            ValueError: If ``name`` is a protected token or a block keyword.
        """
        if name in self._protected:
            raise ValueError(f"{name!r} is a protected token name and cannot be a helper")
        if name in BLOCK_HELPERS or not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
            raise ValueError(f"Invalid helper name: {name!r}")
        self._helpers[name] = func

    def translate(self, source: str) -> Program:
        """Translate mustache source into a Jinja2 program."""
        return _Translator(
            self._helpers,
            max_tokens=self._settings.max_template_tokens,
            max_depth=self._settings.max_block_depth,
            check=self._check_expression,
        ).translate(source)

    def _check_expression(self, expr: str) -> None:
        self._env.parse(f"{{{{ {expr} }}}}")

    def compile(self, source: str, context: dict[str, Any]) -> str:
        """Compile ``source`` against ``context``.

        Args:
            source: Template source with mustache tokens.
            context: Flat context produced by the context builder.

        Returns:
            Rendered HTML. Failures render inline diagnostics.
        """
        if not source:
            return ""

        program = self.translate(source)
        for error in program.errors:
            logger.warning(f"Template compilation error: {error}")

        try:
            template = self._env.from_string(program.source)
            return template.render(_root=context, _text=program.texts)
        except TemplateError as e:
            logger.error(f"Template String Resolution Error: {e}", exc_info=True)
            return str(render_diagnostic(CompilationError(str(e))))

    def _call_helper(self, name: str, options: dict[str, Any], *args: Any) -> Any:
        func = self._helpers[name]
        try:
            return func(*(_plain(a) for a in args), **{k: _plain(v) for k, v in options.items()})
        except Exception as e:
            logger.warning(f"Helper {name!r} failed: {e}")
            return HelperFailure(render_diagnostic(CompilationError(f"Helper {name!r} failed: {e}")))
