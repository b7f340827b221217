"""Template engine strategies.

Implements mustache template compilation, custom-variable and line-item
binding, and page assembly for proposal documents.
"""

from proposal_engine.strategies.template_engine.assembler import DocumentRender, ProposalRenderer
from proposal_engine.strategies.template_engine.compiler import HandlebarsCompiler
from proposal_engine.strategies.template_engine.context import build_context
from proposal_engine.strategies.template_engine.custom_variables import CustomVariableProcessor
from proposal_engine.strategies.template_engine.guard import ProtectedTokenGuard
from proposal_engine.strategies.template_engine.harvest import harvest_variables, split_pages
from proposal_engine.strategies.template_engine.line_items import LineItemProcessor
from proposal_engine.strategies.template_engine.models import (
    CostLineItem,
    Estimate,
    ProposalTemplate,
    TemplatePage,
    empty_template,
)

__all__ = [
    "CostLineItem",
    "CustomVariableProcessor",
    "DocumentRender",
    "Estimate",
    "HandlebarsCompiler",
    "LineItemProcessor",
    "ProposalRenderer",
    "ProposalTemplate",
    "ProtectedTokenGuard",
    "TemplatePage",
    "build_context",
    "empty_template",
    "harvest_variables",
    "split_pages",
]
