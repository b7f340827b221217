"""Escape/restore guard around the template compiler.

Protected tokens (custom variables and line-item selectors) belong to the
binding passes, not to the compiler. Before compilation every literal
``{{name}}`` is swapped for an opaque marker; after compilation the markers
are swapped back.

Markers contain single braces. The compiler never interprets a single
brace, and it encodes every brace it writes from a context value, so a
marker can only come from the template source itself.
"""

import logging
import re
from collections.abc import Iterable

from proposal_engine.strategies.template_engine.models import PROTECTED_TOKEN_NAMES

logger = logging.getLogger(__name__)


class ProtectedTokenGuard:
    """Hides a closed set of token names from the compiler."""

    def __init__(self, names: Iterable[str] = PROTECTED_TOKEN_NAMES) -> None:
        self._names = tuple(dict.fromkeys(names))
        for name in self._names:
            if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", name):
                raise ValueError(f"Invalid protected token name: {name!r}")

        alternation = "|".join(re.escape(n) for n in sorted(self._names, key=len, reverse=True))
        self._token_re = re.compile(r"(?<!\{)\{\{(" + alternation + r")\}\}(?!\})")
        self._marker_re = re.compile(r"\{~protected:(" + alternation + r")~\}")

    @property
    def names(self) -> tuple[str, ...]:
        return self._names

    def is_protected(self, name: str) -> bool:
        return name in self._names

    @staticmethod
    def marker(name: str) -> str:
        """Return the compiler-opaque marker for ``name``."""
        return f"{{~protected:{name}~}}"

    def escape(self, source: str) -> str:
        """Replace every protected ``{{name}}`` with its marker."""
        return self._token_re.sub(lambda m: self.marker(m.group(1)), source)

    def restore(self, html: str) -> str:
        """Replace every marker with its original ``{{name}}`` token."""
        restored, count = self._marker_re.subn(lambda m: f"{{{{{m.group(1)}}}}}", html)
        if count:
            logger.debug(f"Restored {count} protected tokens")
        return restored
