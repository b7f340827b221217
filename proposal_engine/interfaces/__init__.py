"""Abstract base classes for the proposal rendering pipeline."""

from proposal_engine.interfaces.template import (
    BaseTemplateCompiler,
    BaseTokenProcessor,
    CompilationError,
    RenderMode,
    RenderState,
    TemplateLimitError,
    TokenCounters,
)

__all__ = [
    "BaseTemplateCompiler",
    "BaseTokenProcessor",
    "CompilationError",
    "RenderMode",
    "RenderState",
    "TemplateLimitError",
    "TokenCounters",
]
