"""Context builder.

Flattens an Estimate into the dictionary templates are compiled against:
raw record fields, grouped line items, currency-formatted aggregations and
aliased fields with fallback chains for legacy names.
"""

import logging
from datetime import date
from typing import Any

from proposal_engine.core.config import Settings, get_settings
from proposal_engine.strategies.template_engine.helpers import format_currency
from proposal_engine.strategies.template_engine.models import (
    LINE_ITEM_CATEGORIES,
    CostLineItem,
    Estimate,
)

logger = logging.getLogger(__name__)


def _first(*values: Any, default: Any = "") -> Any:
    """Return the first truthy value, mirroring ``a || b || default``."""
    for value in values:
        if value:
            return value
    return default


def _category_total(items: list[CostLineItem]) -> float:
    return sum(item.total or 0 for item in items)


def build_context(
    estimate: Estimate,
    *,
    today: date | None = None,
    settings: Settings | None = None,
) -> dict[str, Any]:
    """Build the template context for an estimate.

    Args:
        estimate: The estimate record.
        today: Value exposed as ``today``. Defaults to the current date;
            pass a fixed date for reproducible renders.
        settings: Settings for currency symbol and fallback names.

    Returns:
        A flat dictionary; the estimate is not modified.
    """
    settings = settings or get_settings()
    symbol = settings.currency_symbol

    def money(value: Any) -> str:
        return format_currency(value or 0, symbol)

    context: dict[str, Any] = estimate.model_dump(by_alias=True)

    line_items = {
        category.key: [item.model_dump(by_alias=True) for item in estimate.line_items(category.key)]
        for category in LINE_ITEM_CATEGORIES
    }

    aggregations = {
        f"{category.key}Total": money(_category_total(estimate.line_items(category.key)))
        for category in LINE_ITEM_CATEGORIES
    }
    aggregations["subTotal"] = money(estimate.sub_total)
    aggregations["grandTotal"] = money(estimate.grand_total)

    proposal_no = f"{estimate.estimate or 'DRAFT'}-V{estimate.version_number or 1}"
    customer_name = _first(
        estimate.customer_name, estimate.customer, default=settings.default_customer_name
    )

    context.update(
        {
            "lineItems": line_items,
            "aggregations": aggregations,
            "proposalNo": proposal_no,
            "fullProposalId": proposal_no,
            "jobAddress": _first(estimate.job_address),
            "customerName": customer_name,
            "clientName": customer_name,
            "projectName": _first(estimate.project_name, estimate.project_title),
            "projectTitle": _first(estimate.project_title, estimate.project_name),
            "contactName": _first(estimate.contact_name),
            "contactPerson": _first(estimate.contact_name),
            "contactPhone": _first(estimate.contact_phone),
            "contactEmail": _first(estimate.contact_email),
            "today": today or date.today(),
        }
    )

    logger.debug(
        f"Context built for estimate {estimate.id or proposal_no}: "
        f"{sum(len(v) for v in line_items.values())} line items"
    )
    return context
