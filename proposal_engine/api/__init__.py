"""FastAPI routers and dependencies."""

from proposal_engine.api.deps import get_component_factory, get_renderer
from proposal_engine.api.proposals import router as proposals_router

__all__ = [
    "get_component_factory",
    "get_renderer",
    "proposals_router",
]
