"""API request and response schemas.

Pydantic v2 models for API serialization/deserialization. Field names on
the wire are camelCase, matching the estimate and template records.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from proposal_engine.strategies.template_engine.models import (
    Estimate,
    ProposalTemplate,
    TemplatePage,
)


# =============================================================================
# Rendering Schemas
# =============================================================================


class PreviewRequest(BaseModel):
    """Request for rendering a template in edit or view mode."""

    model_config = ConfigDict(populate_by_name=True)

    template: ProposalTemplate
    estimate: Estimate
    edit_mode: bool = Field(default=True, alias="editMode", description="Render inline controls")
    pages: list[TemplatePage] | None = Field(
        default=None,
        description="Manually edited pages that replace the template's own pages",
    )


class PreviewResponse(BaseModel):
    """Rendered document."""

    html: str = Field(description="Rendered pages joined by the page-break marker")


class GenerateRequest(BaseModel):
    """Request for generating the final (view mode) document."""

    model_config = ConfigDict(populate_by_name=True)

    template: ProposalTemplate
    estimate: Estimate
    custom_variables: dict[str, str] | None = Field(
        default=None,
        alias="customVariables",
        description="Variable map to bind; defaults to the estimate's customVariables",
    )


class GenerateResponse(BaseModel):
    """Final document, whole and per page."""

    html: str
    pages: list[str]


# =============================================================================
# Harvest Schemas
# =============================================================================


class HarvestRequest(BaseModel):
    """Edit-mode HTML to read variable values from."""

    html: str


class HarvestResponse(BaseModel):
    """Variable map read from edit-mode controls."""

    model_config = ConfigDict(populate_by_name=True)

    custom_variables: dict[str, str] = Field(alias="customVariables")


# =============================================================================
# Error Schemas
# =============================================================================


class ErrorResponse(BaseModel):
    """Standard error response."""

    detail: str = Field(description="Error message")
    error_code: str | None = Field(default=None, description="Application-specific error code")
    extra: dict[str, Any] | None = Field(default=None, description="Additional error context")
