"""Reading rendered documents back.

``harvest_variables`` collects the values of the edit-mode controls in
document order, producing the persisted variable map with the same
positional keys the binding passes use. ``split_pages`` cuts a rendered
document into its pages.
"""

import logging
import re

from bs4 import BeautifulSoup, Tag

from proposal_engine.interfaces.template import TokenCounters

logger = logging.getLogger(__name__)

DEFAULT_PAGE_BREAK = "___PAGE_BREAK___"

_INPUT_KINDS = {
    "custom-var-text": "customText",
    "custom-var-currency": "customCurrency",
    "custom-var-number": "customNumber",
}

_PAGE_BREAK_PATTERNS = (
    re.compile(r"<!--\s*PAGEBREAK\s*-->", re.IGNORECASE),
    re.compile(r'<div class="page-break">\s*</div>', re.IGNORECASE),
    re.compile(r'<div style="page-break-after:\s*always[^"]*"[^>]*>\s*</div>', re.IGNORECASE),
)


def _input_kind(tag: Tag) -> str | None:
    if tag.name != "input":
        return None
    for css_class in tag.get("class", []):
        if css_class in _INPUT_KINDS:
            return _INPUT_KINDS[css_class]
    return None


def _is_line_item_select(tag: Tag) -> bool:
    return tag.name == "select" and "line-item-select" in tag.get("class", [])


def _selected_label(select: Tag) -> str:
    if select.has_attr("disabled"):
        return ""
    option = select.find("option", selected=True)
    if option is None or option.has_attr("data-prompt"):
        return ""
    return option.get_text()


def harvest_variables(html: str) -> dict[str, str]:
    """Collect the persisted variable map from edit-mode HTML.

    Inputs map to ``customText_i`` / ``customCurrency_i`` / ``customNumber_i``
    (one counter per kind) and line-item selectors to ``lineItem_i`` (one
    shared counter) holding the selected option's label. Unselected and
    disabled selectors harvest as ``""``; the prompt option is recognised by
    its ``data-prompt`` attribute, so items without an id still harvest.
    """
    soup = BeautifulSoup(html, "html.parser")
    counters = TokenCounters()
    variables: dict[str, str] = {}

    for tag in soup.find_all(lambda t: _input_kind(t) is not None or _is_line_item_select(t)):
        if tag.name == "input":
            kind = _input_kind(tag)
            variables[f"{kind}_{counters.next_custom(kind)}"] = tag.get("value", "")
        else:
            variables[f"lineItem_{counters.next_line_item()}"] = _selected_label(tag)

    logger.debug(f"Harvested {len(variables)} variables")
    return variables


def split_pages(html: str, marker: str = DEFAULT_PAGE_BREAK) -> list[str]:
    """Split a document into pages.

    Known page-break forms (HTML comment, page-break div, inline
    ``page-break-after: always`` div) are normalized to ``marker`` first.
    Blank sections are dropped.
    """
    normalized = html
    for pattern in _PAGE_BREAK_PATTERNS:
        normalized = pattern.sub(marker, normalized)
    return [section for section in normalized.split(marker) if section.strip()]
