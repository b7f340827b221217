"""Concrete strategy implementations."""

from proposal_engine.strategies.template_engine import (
    CustomVariableProcessor,
    HandlebarsCompiler,
    LineItemProcessor,
    ProposalRenderer,
)

__all__ = [
    "HandlebarsCompiler",
    "CustomVariableProcessor",
    "LineItemProcessor",
    "ProposalRenderer",
]
