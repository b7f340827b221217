"""Template engine domain models.

Pydantic models for the records the engine consumes (estimates, cost line
items, proposal templates) and the fixed token vocabulary shared by the
guard and the binding passes.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from proposal_engine.strategies.template_engine.helpers import parse_number


def _stringify(v: Any) -> str | None:
    """Render scalars from the record store as text (``5550100`` -> ``"5550100"``)."""
    if v is None:
        return None
    if isinstance(v, float) and v.is_integer():
        return str(int(v))
    return str(v)


@dataclass(frozen=True)
class LineItemCategory:
    """A cost category that line-item tokens can bind against.

    Attributes:
        token: Token name used in templates (``lineItemLabor``).
        key: Name of the estimate collection (``labor``).
        label: Human label used in selector prompts (``Labor Item``).
        name_field: The category's own descriptive field on its items.
    """

    token: str
    key: str
    label: str
    name_field: str


LINE_ITEM_CATEGORIES: tuple[LineItemCategory, ...] = (
    LineItemCategory("lineItemLabor", "labor", "Labor Item", "labor"),
    LineItemCategory("lineItemEquipment", "equipment", "Equipment Item", "equipmentMachine"),
    LineItemCategory("lineItemMaterial", "material", "Material Item", "material"),
    LineItemCategory("lineItemTool", "tools", "Tool Item", "tool"),
    LineItemCategory("lineItemOverhead", "overhead", "Overhead Item", "overhead"),
    LineItemCategory("lineItemSubcontractor", "subcontractor", "Subcontractor Item", "subcontractor"),
    LineItemCategory("lineItemDisposal", "disposal", "Disposal Item", "disposalAndHaulOff"),
    LineItemCategory("lineItemMiscellaneous", "miscellaneous", "Misc Item", "item"),
)

LINE_ITEM_KEYS: tuple[str, ...] = tuple(c.key for c in LINE_ITEM_CATEGORIES)

CUSTOM_VARIABLE_TOKENS: tuple[str, ...] = ("customText", "customCurrency", "customNumber")

PROTECTED_TOKEN_NAMES: tuple[str, ...] = CUSTOM_VARIABLE_TOKENS + tuple(
    c.token for c in LINE_ITEM_CATEGORIES
)


class CostLineItem(BaseModel):
    """A single cost line on an estimate.

    Category specific fields (``labor``, ``equipmentMachine``, ``uom``,
    ``supplier``...) are kept as extra attributes.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    description: str | None = None
    classification: str | None = None
    sub_classification: str | None = Field(default=None, alias="subClassification")
    cost: float | None = None
    quantity: float | None = None
    total: float | None = None

    @field_validator("id", "description", "classification", "sub_classification", mode="before")
    @classmethod
    def stringify(cls, v: Any) -> str | None:
        return _stringify(v)

    @field_validator("cost", "quantity", "total", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> float | None:
        """Accept formatted amounts such as ``"$1,200.00"``."""
        if v is None or v == "":
            return None
        return parse_number(v)

    def get_field(self, name: str) -> Any:
        """Return a declared or extra field by its record name."""
        for attr, info in type(self).model_fields.items():
            if name in (attr, info.alias):
                return getattr(self, attr)
        return (self.model_extra or {}).get(name)


class Estimate(BaseModel):
    """An estimate record as loaded from the record store.

    Only the fields the engine reads are declared; every other field of the
    record is preserved as an extra attribute and exposed to templates.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    estimate: str | None = None
    version_number: int | float | str | None = Field(default=None, alias="versionNumber")
    date: str | int | float | None = None
    customer: str | None = None
    customer_name: str | None = Field(default=None, alias="customerName")
    project_title: str | None = Field(default=None, alias="projectTitle")
    project_name: str | None = Field(default=None, alias="projectName")
    job_address: str | None = Field(default=None, alias="jobAddress")
    contact_name: str | None = Field(default=None, alias="contactName")
    contact_phone: str | None = Field(default=None, alias="contactPhone")
    contact_email: str | None = Field(default=None, alias="contactEmail")
    sub_total: float | None = Field(default=None, alias="subTotal")
    grand_total: float | None = Field(default=None, alias="grandTotal")

    labor: list[CostLineItem] = Field(default_factory=list)
    equipment: list[CostLineItem] = Field(default_factory=list)
    material: list[CostLineItem] = Field(default_factory=list)
    tools: list[CostLineItem] = Field(default_factory=list)
    overhead: list[CostLineItem] = Field(default_factory=list)
    subcontractor: list[CostLineItem] = Field(default_factory=list)
    disposal: list[CostLineItem] = Field(default_factory=list)
    miscellaneous: list[CostLineItem] = Field(default_factory=list)

    custom_variables: dict[str, str] = Field(default_factory=dict, alias="customVariables")

    @field_validator(
        "id",
        "estimate",
        "customer",
        "customer_name",
        "project_title",
        "project_name",
        "job_address",
        "contact_name",
        "contact_phone",
        "contact_email",
        mode="before",
    )
    @classmethod
    def stringify(cls, v: Any) -> str | None:
        return _stringify(v)

    @field_validator("version_number", mode="before")
    @classmethod
    def normalize_version(cls, v: Any) -> int | float | str | None:
        if isinstance(v, float) and v.is_integer():
            return int(v)
        return v

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v: Any) -> str | int | float | None:
        """Keep epoch milliseconds numeric; everything else becomes text."""
        if isinstance(v, (date, datetime)):
            return v.isoformat()
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return v
        return _stringify(v)

    @field_validator("sub_total", "grand_total", mode="before")
    @classmethod
    def coerce_amount(cls, v: Any) -> float | None:
        if v is None or v == "":
            return None
        return parse_number(v)

    @field_validator(*LINE_ITEM_KEYS, mode="before")
    @classmethod
    def default_collection(cls, v: Any) -> Any:
        """Treat missing collections as empty."""
        return [] if v is None else v

    @field_validator("custom_variables", mode="before")
    @classmethod
    def stringify_variables(cls, v: Any) -> dict[str, str]:
        if not v:
            return {}
        return {str(k): str(val) for k, val in dict(v).items() if val is not None}

    def line_items(self, key: str) -> list[CostLineItem]:
        """Return the collection stored under ``key`` (empty if unknown)."""
        if key not in LINE_ITEM_KEYS:
            return []
        return getattr(self, key)


class TemplatePage(BaseModel):
    """One page of rich content."""

    model_config = ConfigDict(extra="allow")

    content: str = ""

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, v: Any) -> str:
        return "" if v is None else v


class ProposalTemplate(BaseModel):
    """A proposal template: ordered pages, or legacy flat content."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str | None = Field(default=None, alias="_id")
    title: str = ""
    version: int = 1
    content: str = ""
    pages: list[TemplatePage] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def stringify_id(cls, v: Any) -> str | None:
        return None if v is None else str(v)

    @field_validator("content", mode="before")
    @classmethod
    def default_content(cls, v: Any) -> str:
        return "" if v is None else v

    @field_validator("pages", mode="before")
    @classmethod
    def default_pages(cls, v: Any) -> Any:
        return [] if v is None else v


EMPTY_TEMPLATE_CONTENT = (
    '<p class="ql-align-justify"><strong style="color: rgb(0, 0, 0);"> </strong></p>'
    "<table><tbody>"
    '<tr><td data-row="1"><strong style="color: rgb(0, 0, 0);">Proposal / Contract Number:</strong>'
    '<span style="color: rgb(0, 0, 0);"> {{proposalNo}} </span></td>'
    '<td data-row="1"><strong style="color: rgb(0, 0, 0);">Date: </strong>'
    '<span style="color: rgb(0, 0, 0);">{{date}} </span></td></tr>'
    '<tr><td data-row="2"><strong style="color: rgb(0, 0, 0);">Job Name:</strong>'
    '<span style="color: rgb(0, 0, 0);"> {{projectTitle}} </span></td>'
    '<td data-row="2"><strong style="color: rgb(0, 0, 0);">Job Address: </strong>'
    '<span style="color: rgb(0, 0, 0);">{{jobAddress}} </span></td></tr>'
    "</tbody></table>"
    "<h2><br></h2>"
    '<p class="ql-align-justify"><strong style="color: rgb(0, 0, 0);"><u>Customer Contact:</u></strong></p>'
    '<p class="ql-align-justify">{{customerName}}</p>'
    '<p class="ql-align-justify"><span style="color: rgb(0, 0, 0);">{{contactPerson}} </span></p>'
    '<p class="ql-align-justify">{{contactEmail}}</p>'
    '<p class="ql-align-justify">{{contactPhone}}</p>'
    "<h2><br></h2>"
    '<p class="ql-align-center"><strong style="color: rgb(0, 0, 0);"><u>PROJECT SCOPE OF WORK</u></strong></p>'
    "<p><br></p><p>Insert scope of work here...</p>"
)


def empty_template() -> ProposalTemplate:
    """Return the built-in starter template."""
    return ProposalTemplate(
        _id="empty",
        title="Empty Template",
        pages=[TemplatePage(content=EMPTY_TEMPLATE_CONTENT)],
    )
