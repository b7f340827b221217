"""Unit tests for variable harvesting and page splitting."""

from proposal_engine.strategies.template_engine.harvest import harvest_variables, split_pages


# =============================================================================
# Harvest Tests
# =============================================================================


class TestHarvestVariables:
    """Test suite for harvest_variables."""

    def test_inputs_in_document_order(self):
        """Test one counter per input kind."""
        html = (
            '<input class="custom-var-text" value="a">'
            '<p><input class="custom-var-number" value="2"></p>'
            '<input class="custom-var-text" value="b">'
            '<input class="custom-var-currency" value="9.99">'
        )

        assert harvest_variables(html) == {
            "customText_0": "a",
            "customNumber_0": "2",
            "customText_1": "b",
            "customCurrency_0": "9.99",
        }

    def test_selectors_store_selected_label(self):
        """Test line-item selectors share one counter."""
        html = (
            '<select class="line-item-select"><option value="" data-prompt>Select...</option>'
            '<option value="x" selected>Foreman &amp; Crew</option></select>'
            '<select class="line-item-select"><option value="" data-prompt>Select...</option>'
            '<option value="y">Other</option></select>'
            '<select class="line-item-select" disabled><option value="" data-prompt>No Tool Items</option></select>'
        )

        assert harvest_variables(html) == {
            "lineItem_0": "Foreman & Crew",
            "lineItem_1": "",
            "lineItem_2": "",
        }

    def test_selected_option_without_value(self):
        """Test a selected item with an empty value is not mistaken for the prompt."""
        html = (
            '<select class="line-item-select"><option value="" data-prompt>Select...</option>'
            '<option value="" selected>Foreman</option></select>'
            '<select class="line-item-select"><option value="" data-prompt selected>Select...</option>'
            '<option value="">Laborer</option></select>'
        )

        assert harvest_variables(html) == {"lineItem_0": "Foreman", "lineItem_1": ""}

    def test_encoded_braces_are_decoded(self):
        """Test persisted values come back as the user typed them."""
        html = '<input class="custom-var-text" value="&#123;x&#125;">'
        assert harvest_variables(html) == {"customText_0": "{x}"}

    def test_unrelated_controls_are_ignored(self):
        """Test other inputs and selects."""
        html = '<input type="text" value="q"><select><option selected value="1">1</option></select>'
        assert harvest_variables(html) == {}


# =============================================================================
# Page Splitting Tests
# =============================================================================


class TestSplitPages:
    """Test suite for split_pages."""

    def test_splits_on_marker(self):
        """Test the default marker."""
        assert split_pages("a___PAGE_BREAK___b") == ["a", "b"]

    def test_normalizes_known_break_forms(self):
        """Test comment and div page breaks."""
        html = (
            "a<!-- PAGEBREAK -->b"
            '<div class="page-break"></div>c'
            '<div style="page-break-after: always;"></div>d'
        )
        assert split_pages(html) == ["a", "b", "c", "d"]

    def test_blank_sections_are_dropped(self):
        """Test empty pages."""
        assert split_pages("a___PAGE_BREAK___  \n___PAGE_BREAK___b") == ["a", "b"]
        assert split_pages("") == []

    def test_custom_marker(self):
        """Test a configured marker."""
        assert split_pages("a<hr/>b", marker="<hr/>") == ["a", "b"]
