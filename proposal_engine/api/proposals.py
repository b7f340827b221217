"""Proposal rendering API routes.

Renders proposal templates for the editor (edit mode) and the final
document (view mode), and reads variable values back from edited HTML.
"""

import logging

from fastapi import APIRouter, Depends, status

from proposal_engine.api.deps import get_renderer
from proposal_engine.api.schemas import (
    GenerateRequest,
    GenerateResponse,
    HarvestRequest,
    HarvestResponse,
    PreviewRequest,
    PreviewResponse,
)
from proposal_engine.interfaces.template import RenderMode
from proposal_engine.strategies.template_engine.assembler import ProposalRenderer
from proposal_engine.strategies.template_engine.harvest import harvest_variables
from proposal_engine.strategies.template_engine.models import ProposalTemplate, empty_template

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/proposals", tags=["proposals"])


# =============================================================================
# Endpoints
# =============================================================================


@router.post("/preview", response_model=PreviewResponse, status_code=status.HTTP_200_OK)
def preview_proposal(
    request: PreviewRequest,
    renderer: ProposalRenderer = Depends(get_renderer),
) -> PreviewResponse:
    """Render a template against an estimate.

    When ``pages`` is supplied it replaces the template's pages, so manual
    edits made in the editor can be previewed before they are saved.
    """
    template = request.template
    if request.pages is not None:
        template = template.model_copy(update={"pages": request.pages})

    mode = RenderMode.from_flag(request.edit_mode)
    logger.info(f"Preview requested: template={template.id}, mode={mode.value}")

    html = renderer.render(template, request.estimate, mode)
    return PreviewResponse(html=html)


@router.post("/generate", response_model=GenerateResponse, status_code=status.HTTP_200_OK)
def generate_proposal(
    request: GenerateRequest,
    renderer: ProposalRenderer = Depends(get_renderer),
) -> GenerateResponse:
    """Render the final, view-mode document with the confirmed variables."""
    logger.info(f"Generate requested: template={request.template.id}")

    document = renderer.begin(
        request.template,
        request.estimate,
        RenderMode.VIEW,
        variables=request.custom_variables,
    )
    pages = document.run()
    return GenerateResponse(html=document.html, pages=pages)


@router.post("/harvest", response_model=HarvestResponse, status_code=status.HTTP_200_OK)
def harvest_proposal_variables(request: HarvestRequest) -> HarvestResponse:
    """Read the variable map back from edit-mode HTML."""
    variables = harvest_variables(request.html)
    logger.info(f"Harvested {len(variables)} variables")
    return HarvestResponse(custom_variables=variables)


@router.get("/empty-template", response_model=ProposalTemplate, response_model_by_alias=True)
def get_empty_template() -> ProposalTemplate:
    """Return the built-in starter template."""
    return empty_template()
