"""Unit tests for the protected token guard."""

import pytest

from proposal_engine.strategies.template_engine.guard import ProtectedTokenGuard
from proposal_engine.strategies.template_engine.models import PROTECTED_TOKEN_NAMES


class TestProtectedTokenGuard:
    """Test suite for ProtectedTokenGuard."""

    @pytest.fixture
    def guard(self):
        """Create a guard over the default protected names."""
        return ProtectedTokenGuard()

    def test_covers_custom_and_line_item_tokens(self, guard):
        """Test the closed set of protected names."""
        assert set(guard.names) == set(PROTECTED_TOKEN_NAMES)
        assert len(guard.names) == 11
        assert guard.is_protected("lineItemDisposal")
        assert not guard.is_protected("customerName")

    def test_escape_hides_protected_tokens(self, guard):
        """Test that no protected token survives escaping."""
        escaped = guard.escape("A {{customText}} B {{lineItemLabor}} C {{customerName}}")

        assert "{{customText}}" not in escaped
        assert "{{lineItemLabor}}" not in escaped
        assert "{{customerName}}" in escaped

    def test_restore_round_trips_every_marker(self, guard):
        """Test that restore removes every marker it introduced."""
        source = "{{customText}}{{customCurrency}}<p>{{lineItemMiscellaneous}}</p>"

        restored = guard.restore(guard.escape(source))

        assert restored == source
        assert "~protected:" not in restored

    def test_triple_stash_is_left_alone(self, guard):
        """Test that only the plain double-brace form is protected."""
        assert guard.escape("{{{customText}}}") == "{{{customText}}}"

    def test_rejects_invalid_names(self):
        """Test name validation."""
        with pytest.raises(ValueError):
            ProtectedTokenGuard(["not valid"])
