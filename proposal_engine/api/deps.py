"""FastAPI dependencies for dependency injection."""

import logging

from fastapi import Request

from proposal_engine.core.factory import ComponentFactory, get_factory
from proposal_engine.strategies.template_engine.assembler import ProposalRenderer

logger = logging.getLogger(__name__)


def get_component_factory(request: Request) -> ComponentFactory:
    """Return the factory bound to the application, or the global one."""
    factory = getattr(request.app.state, "factory", None)
    return factory if factory is not None else get_factory()


def get_renderer(request: Request) -> ProposalRenderer:
    """Dependency for the shared proposal renderer."""
    return get_component_factory(request).get_renderer()
