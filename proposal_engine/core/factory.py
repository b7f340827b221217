"""Component Factory for strategy instantiation.

Builds the compiler and renderer from settings and caches them, so an
application shares one renderer (and one Jinja2 environment) across
requests.
"""

import logging

from proposal_engine.core.config import Settings, get_settings
from proposal_engine.interfaces.template import BaseTemplateCompiler
from proposal_engine.strategies.template_engine.assembler import ProposalRenderer
from proposal_engine.strategies.template_engine.compiler import HandlebarsCompiler
from proposal_engine.strategies.template_engine.custom_variables import CustomVariableProcessor
from proposal_engine.strategies.template_engine.guard import ProtectedTokenGuard
from proposal_engine.strategies.template_engine.line_items import LineItemProcessor

logger = logging.getLogger(__name__)


class ComponentFactory:
    """Factory for creating component instances based on configuration.

    Example:
        ```python
        factory = ComponentFactory(get_settings())

        compiler = factory.get_compiler()
        renderer = factory.get_renderer()
        ```
    """

    def __init__(self, settings: Settings | None = None) -> None:
        """Initialize the factory with optional settings.

        Args:
            settings: Application settings. If None, uses global settings.
        """
        self._settings = settings or get_settings()
        self._guard_cache: ProtectedTokenGuard | None = None
        self._compiler_cache: BaseTemplateCompiler | None = None
        self._renderer_cache: ProposalRenderer | None = None

    @property
    def settings(self) -> Settings:
        return self._settings

    def get_guard(self) -> ProtectedTokenGuard:
        """Get the protected-token guard."""
        if self._guard_cache is None:
            self._guard_cache = ProtectedTokenGuard()
        return self._guard_cache

    def get_compiler(self, compiler_type: str = "handlebars") -> BaseTemplateCompiler:
        """Get a template compiler instance.

        Args:
            compiler_type: The compiler type to instantiate.

        Returns:
            A BaseTemplateCompiler implementation instance.

        Raises:
            ValueError: If the compiler type is unknown.
        """
        if self._compiler_cache is None:
            logger.info(f"Instantiating compiler: {compiler_type}")

            match compiler_type:
                case "handlebars":
                    self._compiler_cache = HandlebarsCompiler(
                        self._settings, protected_names=self.get_guard().names
                    )
                case _:
                    raise ValueError(
                        f"Unknown compiler type: {compiler_type}. Valid options: 'handlebars'"
                    )

        return self._compiler_cache

    def get_renderer(self) -> ProposalRenderer:
        """Get the proposal renderer, wired with the cached compiler."""
        if self._renderer_cache is None:
            logger.info("Instantiating proposal renderer")

            self._renderer_cache = ProposalRenderer(
                settings=self._settings,
                compiler=self.get_compiler(),
                guard=self.get_guard(),
                processors=[
                    CustomVariableProcessor(self._settings.currency_symbol),
                    LineItemProcessor(),
                ],
            )

        return self._renderer_cache

    def clear_cache(self) -> None:
        """Clear all cached component instances."""
        self._guard_cache = None
        self._compiler_cache = None
        self._renderer_cache = None
        logger.debug("Component factory cache cleared")


# Global factory instance
_factory: ComponentFactory | None = None


def get_factory() -> ComponentFactory:
    """Get or create the global ComponentFactory instance.

    Returns:
        The singleton ComponentFactory instance.
    """
    global _factory
    if _factory is None:
        _factory = ComponentFactory()
    return _factory
