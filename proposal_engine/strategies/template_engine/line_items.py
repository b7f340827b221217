"""Line-item binding pass.

Replaces the eight ``{{lineItem<Category>}}`` tokens with selectors bound
to the estimate's cost collections (edit mode) or with the saved selection
(view mode). All categories share one counter, so the n-th line-item token
of a document binds to ``lineItem_n`` whatever its category.
"""

import logging
import re
from typing import Any

from markupsafe import escape

from proposal_engine.interfaces.template import BaseTokenProcessor, RenderMode, TokenCounters
from proposal_engine.strategies.template_engine.compiler import encode_braces
from proposal_engine.strategies.template_engine.models import (
    LINE_ITEM_CATEGORIES,
    CostLineItem,
    Estimate,
    LineItemCategory,
)

logger = logging.getLogger(__name__)

_SELECT_STYLE = (
    "display: inline-block; min-width: 150px; padding: 2px 6px; margin: 0; "
    "border: 2px solid #3b82f6; border-radius: 4px; background: #eff6ff; "
    "color: #1e40af; font-weight: 500; cursor: pointer; font-size: inherit;"
)
_EMPTY_STYLE = (
    "display: inline-block; min-width: 150px; padding: 2px 6px; margin: 0; "
    "border: 1px dashed #d1d5db; border-radius: 4px; background: #f9fafb; "
    "color: #9ca3af; font-style: italic; font-size: inherit;"
)
_PLACEHOLDER_STYLE = "border-bottom: 1px solid #9ca3af; display: inline-block; min-width: 100px;"


def _safe(value: Any) -> str:
    return encode_braces(str(escape(value)))


def item_label(item: CostLineItem, category: LineItemCategory) -> str:
    """Display label of a line item.

    Falls back from ``description`` to the category's own naming field,
    then ``classification``, then ``item``.
    """
    for value in (
        item.description,
        item.get_field(category.name_field),
        item.classification,
        item.get_field("item"),
    ):
        if value:
            return str(value)
    return "Item"


class LineItemProcessor(BaseTokenProcessor):
    """Binds line-item tokens against the estimate's cost collections."""

    def __init__(self, categories: tuple[LineItemCategory, ...] = LINE_ITEM_CATEGORIES) -> None:
        self._categories = {c.token: c for c in categories}
        alternation = "|".join(re.escape(c.token) for c in categories)
        self._pattern = re.compile(r"\{\{(" + alternation + r")\}\}")

    @property
    def token_names(self) -> tuple[str, ...]:
        return tuple(self._categories)

    def process(
        self,
        html: str,
        *,
        estimate: Estimate,
        mode: RenderMode,
        variables: dict[str, str],
        counters: TokenCounters,
    ) -> str:
        def replace(match: re.Match) -> str:
            category = self._categories[match.group(1)]
            key = f"lineItem_{counters.next_line_item()}"
            saved = variables.get(key) or ""
            if mode is RenderMode.VIEW:
                return self._render_placeholder(saved)
            return self._render_select(category, key, estimate.line_items(category.key), saved)

        return self._pattern.sub(replace, html)

    def _render_select(
        self,
        category: LineItemCategory,
        key: str,
        items: list[CostLineItem],
        saved: str,
    ) -> str:
        attrs = f'class="line-item-select" data-category="{category.key}" data-var-key="{key}"'

        if not items:
            return (
                f'<select {attrs} disabled style="{_EMPTY_STYLE}">'
                f'<option value="" data-prompt>No {category.label}s</option></select>'
            )

        labels = [item_label(item, category) for item in items]
        selected = labels.index(saved) if saved in labels else None
        if saved and selected is None:
            logger.debug(f"Saved selection {saved!r} for {key} matches no {category.key} item")

        options = [f'<option value="" data-prompt>Select {category.label}...</option>']
        for index, (item, label) in enumerate(zip(items, labels)):
            marker = " selected" if index == selected else ""
            options.append(f'<option value="{_safe(item.id or "")}"{marker}>{_safe(label)}</option>')

        return f'<select {attrs} style="{_SELECT_STYLE}">{"".join(options)}</select>'

    def _render_placeholder(self, saved: str) -> str:
        shown = _safe(saved) if saved else "&nbsp;"
        return f'<span class="line-item-placeholder" style="{_PLACEHOLDER_STYLE}">{shown}</span>'
