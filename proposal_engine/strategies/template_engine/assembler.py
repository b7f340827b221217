"""Page assembler.

Renders a proposal template against an estimate. Each page goes through
the full pipeline before the next one starts:

    escape protected tokens -> compile -> restore -> custom variables -> line items

Positional counters belong to one document render and carry over from page
to page, so token indices are global to the document.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from proposal_engine.core.config import Settings, get_settings
from proposal_engine.interfaces.template import (
    BaseTemplateCompiler,
    BaseTokenProcessor,
    RenderMode,
    RenderState,
    TemplateLimitError,
    TokenCounters,
)
from proposal_engine.strategies.template_engine.compiler import (
    HandlebarsCompiler,
    render_diagnostic,
)
from proposal_engine.strategies.template_engine.context import build_context
from proposal_engine.strategies.template_engine.custom_variables import CustomVariableProcessor
from proposal_engine.strategies.template_engine.guard import ProtectedTokenGuard
from proposal_engine.strategies.template_engine.line_items import LineItemProcessor
from proposal_engine.strategies.template_engine.models import Estimate, ProposalTemplate

logger = logging.getLogger(__name__)

_TRANSITIONS: dict[RenderState, frozenset[RenderState]] = {
    RenderState.NOT_STARTED: frozenset({RenderState.PER_PAGE_COMPILING, RenderState.JOINED}),
    RenderState.PER_PAGE_COMPILING: frozenset({RenderState.PER_PAGE_VARIABLE_BINDING}),
    RenderState.PER_PAGE_VARIABLE_BINDING: frozenset(
        {RenderState.PER_PAGE_COMPILING, RenderState.JOINED}
    ),
    RenderState.JOINED: frozenset(),
}


def _coerce_mode(mode: RenderMode | bool) -> RenderMode:
    if isinstance(mode, RenderMode):
        return mode
    return RenderMode.from_flag(bool(mode))


@dataclass
class DocumentRender:
    """One render of one document.

    Owns the context, the positional counters and the rendered pages.
    A DocumentRender runs once; start another for a fresh render.
    """

    renderer: "ProposalRenderer"
    sources: list[str]
    estimate: Estimate
    mode: RenderMode
    variables: dict[str, str]
    context: dict[str, Any]
    counters: TokenCounters = field(default_factory=TokenCounters)
    state: RenderState = RenderState.NOT_STARTED
    pages: list[str] = field(default_factory=list)

    def _advance(self, state: RenderState) -> None:
        if state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid render transition: {self.state.value} -> {state.value}")
        logger.debug(f"Render state: {self.state.value} -> {state.value}")
        self.state = state

    def run(self) -> list[str]:
        """Render every page in order and return the page HTML."""
        if self.state is not RenderState.NOT_STARTED:
            raise RuntimeError("DocumentRender has already run")

        max_pages = self.renderer.settings.max_pages
        for index, source in enumerate(self.sources):
            if index >= max_pages:
                error = TemplateLimitError(
                    f"Document has {len(self.sources)} pages; only the first {max_pages} are rendered"
                )
                logger.warning(str(error))
                self.pages.append(str(render_diagnostic(error)))
                break

            self._advance(RenderState.PER_PAGE_COMPILING)
            html = self.renderer.compile_page(source, self.context)

            self._advance(RenderState.PER_PAGE_VARIABLE_BINDING)
            html = self.renderer.bind_page(
                html,
                estimate=self.estimate,
                mode=self.mode,
                variables=self.variables,
                counters=self.counters,
            )
            self.pages.append(html)

        self._advance(RenderState.JOINED)
        logger.info(
            f"Rendered {len(self.pages)} page(s) in {self.mode.value} mode: "
            f"custom={sum(self.counters.custom.values())}, line_items={self.counters.line_item}"
        )
        return self.pages

    @property
    def html(self) -> str:
        """The rendered document, pages joined by the page-break marker."""
        if self.state is not RenderState.JOINED:
            raise RuntimeError("DocumentRender has not run")
        return self.renderer.settings.page_break_marker.join(self.pages)


class ProposalRenderer:
    """Renders proposal templates in edit or view mode.

    The renderer holds configuration and the compiler only; all per-render
    state lives on the DocumentRender it creates, so one instance can be
    shared across requests.

    Example:
        ```python
        renderer = ProposalRenderer()
        html = renderer.render(template, estimate, RenderMode.VIEW)
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        compiler: BaseTemplateCompiler | None = None,
        guard: ProtectedTokenGuard | None = None,
        processors: list[BaseTokenProcessor] | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.guard = guard or ProtectedTokenGuard()
        self.compiler = compiler or HandlebarsCompiler(self.settings, self.guard.names)
        self.processors = processors or [
            CustomVariableProcessor(self.settings.currency_symbol),
            LineItemProcessor(),
        ]

    def begin(
        self,
        template: ProposalTemplate,
        estimate: Estimate,
        mode: RenderMode | bool = RenderMode.EDIT,
        *,
        variables: dict[str, str] | None = None,
        today: date | None = None,
    ) -> DocumentRender:
        """Prepare a render of ``template`` without running it.

        Args:
            template: Template to render. Its ``pages`` are used when present,
                otherwise its legacy ``content``.
            estimate: Estimate providing data and line items.
            mode: Edit or view mode (a bool is read as ``editMode``).
            variables: Persisted variable map. Defaults to the estimate's
                ``customVariables``.
            today: Date exposed to templates as ``today``.
        """
        if template.pages:
            sources = [page.content for page in template.pages]
        else:
            sources = [template.content]

        return DocumentRender(
            renderer=self,
            sources=sources,
            estimate=estimate,
            mode=_coerce_mode(mode),
            variables=dict(estimate.custom_variables if variables is None else variables),
            context=build_context(estimate, today=today, settings=self.settings),
        )

    def render_pages(
        self,
        template: ProposalTemplate,
        estimate: Estimate,
        mode: RenderMode | bool = RenderMode.EDIT,
        *,
        variables: dict[str, str] | None = None,
        today: date | None = None,
    ) -> list[str]:
        """Render ``template`` and return the HTML of each page."""
        return self.begin(template, estimate, mode, variables=variables, today=today).run()

    def render(
        self,
        template: ProposalTemplate,
        estimate: Estimate,
        mode: RenderMode | bool = RenderMode.EDIT,
        *,
        variables: dict[str, str] | None = None,
        today: date | None = None,
    ) -> str:
        """Render ``template`` into one HTML string with page-break markers."""
        document = self.begin(template, estimate, mode, variables=variables, today=today)
        document.run()
        return document.html

    def render_content(
        self,
        content: str,
        estimate: Estimate,
        mode: RenderMode | bool = RenderMode.EDIT,
        *,
        variables: dict[str, str] | None = None,
        today: date | None = None,
    ) -> str:
        """Render a single content string through the same pipeline."""
        return self.render(
            ProposalTemplate(content=content), estimate, mode, variables=variables, today=today
        )

    def compile_page(self, source: str, context: dict[str, Any]) -> str:
        """Compile one page, keeping protected tokens intact.

        The page-size limit applies to the page as authored, before
        protected tokens are escaped.
        """
        limit = self.settings.max_page_chars
        if len(source) > limit:
            error = TemplateLimitError(
                f"Template section of {len(source)} characters exceeds the {limit} character limit"
            )
            logger.warning(str(error))
            return str(render_diagnostic(error))

        escaped = self.guard.escape(source)
        return self.guard.restore(self.compiler.compile(escaped, context))

    def bind_page(
        self,
        html: str,
        *,
        estimate: Estimate,
        mode: RenderMode,
        variables: dict[str, str],
        counters: TokenCounters,
    ) -> str:
        """Run the binding passes over one compiled page."""
        for processor in self.processors:
            html = processor.process(
                html, estimate=estimate, mode=mode, variables=variables, counters=counters
            )
        return html
