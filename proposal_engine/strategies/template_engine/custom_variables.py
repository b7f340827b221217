"""Custom variable binding pass.

Replaces ``{{customText}}``, ``{{customCurrency}}`` and ``{{customNumber}}``
with inline inputs (edit mode) or static placeholders (view mode). A token's
identity is its ordinal among tokens of the same kind, so the n-th
``{{customText}}`` of a document always binds to ``customText_n``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any

from markupsafe import escape

from proposal_engine.interfaces.template import BaseTokenProcessor, RenderMode, TokenCounters
from proposal_engine.strategies.template_engine.compiler import encode_braces
from proposal_engine.strategies.template_engine.models import CUSTOM_VARIABLE_TOKENS

logger = logging.getLogger(__name__)

_CHAR_WIDTH = 9
_PADDING = 16

_INPUT_STYLE = (
    "display: inline; width: {width}px; min-width: {floor}px; border: none; "
    "border-bottom: 2px solid #374151; padding: 2px 4px; margin: 0; background: #f9fafb; "
    "color: #374151; font-size: inherit; font-family: inherit; outline: none;{extra}"
)
_PLACEHOLDER_STYLE = "border-bottom: 1px solid #9ca3af; display: inline-block; min-width: {floor}px;"


@dataclass(frozen=True)
class _VariableKind:
    css_class: str
    placeholder: str
    floor: int
    currency: bool = False
    right_aligned: bool = False


_KINDS: dict[str, _VariableKind] = {
    "customText": _VariableKind("custom-var-text", "...", 80),
    "customCurrency": _VariableKind("custom-var-currency", "0.00", 40, currency=True, right_aligned=True),
    "customNumber": _VariableKind("custom-var-number", "0", 40, right_aligned=True),
}


def input_width(value: str, floor: int) -> int:
    """Width in pixels of an edit-mode input holding ``value``."""
    return max(floor, len(value) * _CHAR_WIDTH + _PADDING)


def _safe(value: str) -> str:
    return encode_braces(str(escape(value)))


class CustomVariableProcessor(BaseTokenProcessor):
    """Binds custom-variable tokens against the persisted variable map."""

    def __init__(self, currency_symbol: str = "$") -> None:
        self._currency_symbol = currency_symbol
        alternation = "|".join(CUSTOM_VARIABLE_TOKENS)
        self._pattern = re.compile(r"\{\{(" + alternation + r")\}\}")

    @property
    def token_names(self) -> tuple[str, ...]:
        return CUSTOM_VARIABLE_TOKENS

    def process(
        self,
        html: str,
        *,
        estimate: Any = None,
        mode: RenderMode,
        variables: dict[str, str],
        counters: TokenCounters,
    ) -> str:
        def replace(match: re.Match) -> str:
            kind = match.group(1)
            key = f"{kind}_{counters.next_custom(kind)}"
            value = variables.get(key) or ""
            if mode is RenderMode.EDIT:
                return self._render_input(kind, key, value)
            return self._render_placeholder(kind, value)

        return self._pattern.sub(replace, html)

    def _render_input(self, kind: str, key: str, value: str) -> str:
        variable_kind = _KINDS[kind]
        style = _INPUT_STYLE.format(
            width=input_width(value, variable_kind.floor),
            floor=variable_kind.floor,
            extra=" text-align: right;" if variable_kind.right_aligned else "",
        )
        resize = (
            f"this.style.width = Math.max({variable_kind.floor}, "
            f"this.value.length * {_CHAR_WIDTH} + {_PADDING}) + 'px'"
        )
        control = (
            f'<input type="text" class="{variable_kind.css_class}" data-var-key="{key}" '
            f'value="{_safe(value)}" placeholder="{variable_kind.placeholder}" '
            f'oninput="{resize}" style="{style}" />'
        )
        if variable_kind.currency:
            return (
                '<span style="display: inline-flex; align-items: center; margin: 0;">'
                f'<span style="color: #374151; font-weight: 500;">{_safe(self._currency_symbol)}</span>'
                f"{control}</span>"
            )
        return control

    def _render_placeholder(self, kind: str, value: str) -> str:
        variable_kind = _KINDS[kind]
        shown = _safe(value) if value else "&nbsp;"
        placeholder = (
            f'<span class="custom-var-placeholder" style="{_PLACEHOLDER_STYLE.format(floor=variable_kind.floor)}">'
            f"{shown}</span>"
        )
        if variable_kind.currency:
            return f'<span style="color: #374151;">{_safe(self._currency_symbol)}{placeholder}</span>'
        return placeholder
