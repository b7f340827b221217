"""Unit tests for the page assembler."""

import pytest

from proposal_engine.core.config import Settings
from proposal_engine.interfaces.template import RenderMode, RenderState
from proposal_engine.strategies.template_engine.assembler import ProposalRenderer
from proposal_engine.strategies.template_engine.harvest import harvest_variables
from proposal_engine.strategies.template_engine.models import (
    Estimate,
    ProposalTemplate,
    empty_template,
)


@pytest.fixture
def renderer(settings):
    """Create a renderer with default settings."""
    return ProposalRenderer(settings)


def _template(*pages, content=""):
    return ProposalTemplate.model_validate(
        {"title": "T", "content": content, "pages": [{"content": p} for p in pages]}
    )


# =============================================================================
# Pipeline Tests
# =============================================================================


class TestPipeline:
    """Test suite for the per-page pipeline."""

    def test_data_substitution_only(self, renderer, estimate, today):
        """Test a template without protected tokens equals plain substitution."""
        template = _template("Customer: {{customerName}}, Total: {{aggregations.grandTotal}}")

        html = renderer.render(template, estimate, RenderMode.VIEW, today=today)

        assert html == "Customer: Acme Co, Total: $10,000.00"

    def test_all_three_binding_strategies(self, renderer, estimate, today):
        """Test data paths, custom variables and line items in one page."""
        template = _template("{{proposalNo}} {{customText}} {{lineItemLabor}}")

        html = renderer.render(template, estimate, RenderMode.VIEW, today=today)

        assert html.startswith("EST-1042-V2 ")
        assert ">Net 30</span>" in html
        assert ">Foreman</span>" in html

    def test_protected_tokens_inside_blocks(self, renderer, estimate, today):
        """Test each iteration produces its own positional token."""
        template = _template("{{#each lineItems.labor}}<p>{{description}} {{customText}}</p>{{/each}}")

        html = renderer.render(
            template,
            estimate,
            RenderMode.EDIT,
            variables={"customText_0": "a", "customText_1": "b"},
            today=today,
        )

        assert 'data-var-key="customText_0"' in html
        assert 'data-var-key="customText_1"' in html
        assert 'value="a"' in html and 'value="b"' in html

    def test_context_values_are_not_reinterpreted(self, renderer, today):
        """Test a data value that looks like a protected token."""
        estimate = Estimate.model_validate({"customerName": "{{customText}} {{lineItemLabor}}"})

        html = renderer.render(_template("{{customerName}}"), estimate, RenderMode.EDIT, today=today)

        assert "<input" not in html
        assert "<select" not in html
        assert "&#123;&#123;customText&#125;&#125;" in html

    def test_raw_context_values_are_not_reinterpreted(self, renderer, today):
        """Test triple-stash output cannot forge tokens either."""
        estimate = Estimate.model_validate({"note": "{{customText}}"})

        html = renderer.render(_template("{{{note}}}"), estimate, RenderMode.EDIT, today=today)

        assert "<input" not in html

    def test_compile_error_does_not_abort_document(self, renderer, estimate, today):
        """Test a broken page renders a diagnostic and the rest renders."""
        template = _template("{{#each}}", "{{customerName}}")

        pages = renderer.render_pages(template, estimate, RenderMode.VIEW, today=today)

        assert 'class="template-error"' in pages[0]
        assert pages[1] == "Acme Co"


# =============================================================================
# Document Tests
# =============================================================================


class TestDocument:
    """Test suite for multi-page documents."""

    def test_pages_join_with_marker(self, renderer, estimate, today):
        """Test the page-break marker between pages."""
        html = renderer.render(_template("a", "b", "c"), estimate, RenderMode.VIEW, today=today)
        assert html == "a___PAGE_BREAK___b___PAGE_BREAK___c"

    def test_configured_marker(self, estimate, today):
        """Test a custom page-break marker."""
        renderer = ProposalRenderer(Settings(_env_file=None, page_break_marker="<hr/>"))
        assert renderer.render(_template("a", "b"), estimate, RenderMode.VIEW) == "a<hr/>b"

    def test_counters_continue_across_pages(self, renderer, estimate, today):
        """Test positional identity is global to the document."""
        template = _template("{{customText}}{{lineItemLabor}}", "{{customText}}{{lineItemTool}}")

        pages = renderer.render_pages(template, estimate, RenderMode.EDIT, today=today)

        assert 'data-var-key="customText_1"' in pages[1]
        assert 'data-var-key="lineItem_1"' in pages[1]

    def test_counters_reset_per_render(self, renderer, estimate, today):
        """Test a second render starts from zero again."""
        template = _template("{{customText}}")

        first = renderer.render(template, estimate, RenderMode.EDIT, today=today)
        second = renderer.render(template, estimate, RenderMode.EDIT, today=today)

        assert first == second
        assert 'data-var-key="customText_0"' in second

    def test_view_mode_is_idempotent(self, renderer, estimate, today):
        """Test byte-identical output for identical inputs."""
        template = _template(
            "{{proposalNo}} {{formatDate date}} {{customText}} {{customCurrency}}",
            "{{#each lineItems.labor}}{{lineItemLabor}}{{/each}}",
        )

        first = renderer.render(template, estimate, RenderMode.VIEW, today=today)
        second = renderer.render(template, estimate, RenderMode.VIEW, today=today)

        assert first == second

    def test_legacy_content_fallback(self, renderer, estimate, today):
        """Test templates without pages render their content."""
        template = _template(content="Hello {{customerName}} {{customText}}")

        html = renderer.render(template, estimate, RenderMode.VIEW, today=today)

        assert html.startswith("Hello Acme Co ")
        assert ">Net 30</span>" in html

    def test_render_content(self, renderer, estimate, today):
        """Test the single-string entry point."""
        html = renderer.render_content("{{clientName}}", estimate, RenderMode.VIEW, today=today)
        assert html == "Acme Co"

    def test_bool_mode_is_accepted(self, renderer, estimate, today):
        """Test the editMode flag form."""
        html = renderer.render_content("{{customText}}", estimate, True, today=today)
        assert "<input" in html

    def test_variables_default_to_estimate(self, renderer, estimate, today):
        """Test the estimate's customVariables are used when none are given."""
        html = renderer.render_content("{{customText}}", estimate, RenderMode.VIEW, today=today)
        assert ">Net 30</span>" in html

    def test_page_limit(self, estimate, today):
        """Test pages beyond the limit render one diagnostic."""
        renderer = ProposalRenderer(Settings(_env_file=None, max_pages=2))

        pages = renderer.render_pages(_template("a", "b", "c", "d"), estimate, RenderMode.VIEW, today=today)

        assert pages[:2] == ["a", "b"]
        assert len(pages) == 3
        assert 'class="template-error"' in pages[2]

    def test_page_size_limit_counts_authored_source(self, estimate, today):
        """Test protected tokens are measured as written, before escaping."""
        source = "{{customText}}{{lineItemLabor}}"
        renderer = ProposalRenderer(Settings(_env_file=None, max_page_chars=len(source)))

        html = renderer.render_content(source, estimate, RenderMode.VIEW, today=today)
        oversized = renderer.render_content(source + "x", estimate, RenderMode.VIEW, today=today)

        assert 'class="template-error"' not in html
        assert ">Net 30</span>" in html
        assert 'class="template-error"' in oversized

    def test_template_style_date_format(self, renderer, today):
        """Test formatDate with a display-style format argument."""
        estimate = Estimate.model_validate({"date": "2024-03-01"})

        html = renderer.render_content('{{formatDate date "MM/DD/YYYY"}}', estimate, RenderMode.VIEW, today=today)

        assert html == "03/01/2024"

    def test_epoch_date_record_renders(self, renderer, today):
        """Test a record storing its date as epoch milliseconds."""
        estimate = Estimate.model_validate({"date": 1709251200000, "contactPhone": 5550100})

        html = renderer.render_content(
            "{{formatDate date}} {{contactPhone}}", estimate, RenderMode.VIEW, today=today
        )

        assert html == "03/01/2024 5550100"

    def test_bad_token_does_not_blank_the_page(self, renderer, estimate, today):
        """Test one unparsable token leaves the rest of the page intact."""
        html = renderer.render_content(
            "{{customerName}} {{#if (eq zip 007)}}x{{/if}} {{formatDate date in=1}}",
            estimate,
            RenderMode.VIEW,
            today=today,
        )

        assert html.startswith("Acme Co ")
        assert html.count('class="template-error"') == 1

    def test_empty_template_renders(self, renderer, estimate, today):
        """Test the starter template."""
        html = renderer.render(empty_template(), estimate, RenderMode.VIEW, today=today)

        assert "EST-1042-V2" in html
        assert "Dana Reyes" in html
        assert "{{" not in html


# =============================================================================
# Render State Tests
# =============================================================================


class TestDocumentRender:
    """Test suite for DocumentRender state handling."""

    def test_state_ends_joined(self, renderer, estimate, today):
        """Test the lifecycle of a render."""
        document = renderer.begin(_template("a", "b"), estimate, RenderMode.VIEW, today=today)
        assert document.state is RenderState.NOT_STARTED

        document.run()

        assert document.state is RenderState.JOINED
        assert document.html == "a___PAGE_BREAK___b"

    def test_runs_only_once(self, renderer, estimate, today):
        """Test a finished render cannot be rerun."""
        document = renderer.begin(_template("a"), estimate, RenderMode.VIEW, today=today)
        document.run()

        with pytest.raises(RuntimeError):
            document.run()

    def test_html_requires_run(self, renderer, estimate, today):
        """Test reading the document before it ran."""
        document = renderer.begin(_template("a"), estimate, RenderMode.VIEW, today=today)
        with pytest.raises(RuntimeError):
            _ = document.html


# =============================================================================
# Edit/View Round Trip Tests
# =============================================================================


class TestEditViewRoundTrip:
    """Test suite for values persisted from edit mode into view mode."""

    def test_harvested_values_render_in_view(self, renderer, estimate, today):
        """Test edit -> harvest -> view keeps each value at its position."""
        template = _template(
            "{{customText}} {{lineItemLabor}} {{lineItemDisposal}}",
            "{{customText}} {{customNumber}}",
        )
        variables = {
            "customText_0": "Net 30",
            "customText_1": "Rev A",
            "customNumber_0": "4",
            "lineItem_0": "Laborer",
        }

        edit_html = renderer.render(template, estimate, RenderMode.EDIT, variables=variables, today=today)
        harvested = harvest_variables(edit_html)

        assert harvested == {
            "customText_0": "Net 30",
            "lineItem_0": "Laborer",
            "lineItem_1": "",
            "customText_1": "Rev A",
            "customNumber_0": "4",
        }

        view_html = renderer.render(template, estimate, RenderMode.VIEW, variables=harvested, today=today)

        assert view_html.index("Net 30") < view_html.index("Laborer") < view_html.index("Rev A")

    def test_selection_of_item_without_id_survives(self, renderer, today):
        """Test items lacking an _id keep their selection through harvest."""
        estimate = Estimate.model_validate({"labor": [{"description": "Foreman"}]})
        template = _template("{{lineItemLabor}}")

        edit_html = renderer.render(
            template, estimate, RenderMode.EDIT, variables={"lineItem_0": "Foreman"}, today=today
        )
        harvested = harvest_variables(edit_html)

        assert '<option value="" selected>Foreman</option>' in edit_html
        assert harvested == {"lineItem_0": "Foreman"}

        view_html = renderer.render(template, estimate, RenderMode.VIEW, variables=harvested, today=today)
        assert ">Foreman</span>" in view_html
