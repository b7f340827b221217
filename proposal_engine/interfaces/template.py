"""Template compilation and token binding interfaces.

Defines abstract base classes for the proposal rendering pipeline along
with the render mode, per-document token counters and error types.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


class RenderMode(str, enum.Enum):
    """Rendering variant of a proposal document."""

    EDIT = "edit"
    VIEW = "view"

    @classmethod
    def from_flag(cls, edit_mode: bool) -> "RenderMode":
        """Map the legacy ``editMode`` boolean onto a render mode."""
        return cls.EDIT if edit_mode else cls.VIEW


class RenderState(str, enum.Enum):
    """Lifecycle of a single document render."""

    NOT_STARTED = "not_started"
    PER_PAGE_COMPILING = "per_page_compiling"
    PER_PAGE_VARIABLE_BINDING = "per_page_variable_binding"
    JOINED = "joined"


@dataclass
class TokenCounters:
    """Positional counters shared by every page of one document render.

    Attributes:
        custom: Next index per custom-variable kind (e.g. ``customText``).
        line_item: Next index of the single counter shared by all
            line-item categories.
    """

    custom: dict[str, int] = field(default_factory=dict)
    line_item: int = 0

    def next_custom(self, kind: str) -> int:
        """Return the current index for ``kind`` and advance it."""
        index = self.custom.get(kind, 0)
        self.custom[kind] = index + 1
        return index

    def next_line_item(self) -> int:
        """Return the current shared line-item index and advance it."""
        index = self.line_item
        self.line_item += 1
        return index


class BaseTemplateCompiler(ABC):
    """Abstract base class for template compilers.

    Compiles template source against a context into HTML. Implementations
    must never raise for malformed templates; they render an inline
    diagnostic at the failure point instead.
    """

    @abstractmethod
    def compile(self, source: str, context: dict[str, Any]) -> str:
        """Compile ``source`` against ``context``.

        Args:
            source: Template source with mustache tokens.
            context: Flat context produced by the context builder.

        Returns:
            Rendered HTML.
        """

    @abstractmethod
    def register_helper(self, name: str, func: Any) -> None:
        """Register a named helper callable."""


class BaseTokenProcessor(ABC):
    """Abstract base class for post-compilation token binding passes."""

    @abstractmethod
    def process(
        self,
        html: str,
        *,
        estimate: Any,
        mode: RenderMode,
        variables: dict[str, str],
        counters: TokenCounters,
    ) -> str:
        """Replace this processor's tokens in ``html``.

        Args:
            html: Compiled (and restored) page HTML.
            estimate: The estimate record being rendered.
            mode: Edit or view rendering.
            variables: The persisted variable map.
            counters: Document-wide positional counters, advanced in place.

        Returns:
            HTML with every token of this family replaced.
        """

    @property
    @abstractmethod
    def token_names(self) -> tuple[str, ...]:
        """Return the token names this processor binds."""


class CompilationError(Exception):
    """Raised when a template fragment cannot be compiled or evaluated.

    Never escapes a document render; it is converted into an inline
    diagnostic fragment at the failing token.
    """

    def __init__(self, message: str, token: str | None = None) -> None:
        super().__init__(message)
        self.token = token


class TemplateLimitError(CompilationError):
    """Raised when a configured size or depth limit is exceeded."""
