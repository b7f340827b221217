"""Command line interface for the proposal engine.

Sub-commands:

* ``render`` renders a template JSON file against an estimate JSON file.
* ``harvest`` reads the variable map back from edit-mode HTML.
* ``serve`` runs the HTTP API with uvicorn.

Logs go to stderr so rendered output can be piped.
"""

import argparse
import json
import logging
import sys
from collections.abc import Iterable
from datetime import date
from pathlib import Path

from pydantic import ValidationError

from proposal_engine.core.config import get_settings
from proposal_engine.core.factory import ComponentFactory
from proposal_engine.core.logging_config import setup_logging
from proposal_engine.interfaces.template import RenderMode
from proposal_engine.strategies.template_engine.harvest import harvest_variables
from proposal_engine.strategies.template_engine.models import Estimate, ProposalTemplate

logger = logging.getLogger(__name__)


def create_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="proposal-engine",
        description="Render proposal templates against estimates.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render_parser = subparsers.add_parser(
        "render", help="Render a template against an estimate.",
    )
    render_parser.add_argument("template", type=Path, help="Template JSON file.")
    render_parser.add_argument("estimate", type=Path, help="Estimate JSON file.")
    render_parser.add_argument(
        "--edit",
        action="store_true",
        help="Render inline inputs and selectors instead of the final document.",
    )
    render_parser.add_argument(
        "--variables",
        type=Path,
        help="JSON file with the variable map (default: the estimate's customVariables).",
    )
    render_parser.add_argument(
        "--today",
        type=date.fromisoformat,
        help="Render date as YYYY-MM-DD (default: the current date).",
    )
    render_parser.add_argument(
        "--output", "-o", type=Path, help="Write the HTML here instead of stdout.",
    )
    render_parser.set_defaults(handler=handle_render)

    harvest_parser = subparsers.add_parser(
        "harvest", help="Print the variable map held by edit-mode HTML as JSON.",
    )
    harvest_parser.add_argument("html", type=Path, help="Edit-mode HTML file.")
    harvest_parser.set_defaults(handler=handle_harvest)

    serve_parser = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Bind address (default: 0.0.0.0).")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port (default: 8000).")
    serve_parser.add_argument("--reload", action="store_true", help="Reload on code changes.")
    serve_parser.set_defaults(handler=handle_serve)

    return parser


def _read_json(path: Path) -> dict:
    with path.open(encoding="utf-8") as fh:
        return json.load(fh)


def handle_render(args: argparse.Namespace) -> int:
    try:
        template = ProposalTemplate.model_validate(_read_json(args.template))
        estimate = Estimate.model_validate(_read_json(args.estimate))
        variables = _read_json(args.variables) if args.variables else None
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        logger.error(f"Could not load render inputs: {e}")
        return 1

    renderer = ComponentFactory(get_settings()).get_renderer()
    html = renderer.render(
        template,
        estimate,
        RenderMode.from_flag(args.edit),
        variables={str(k): str(v) for k, v in variables.items()} if variables else None,
        today=args.today,
    )

    if args.output:
        args.output.write_text(html, encoding="utf-8")
        logger.info(f"Wrote {len(html)} characters to {args.output}")
    else:
        sys.stdout.write(html)
    return 0


def handle_harvest(args: argparse.Namespace) -> int:
    try:
        html = args.html.read_text(encoding="utf-8")
    except OSError as e:
        logger.error(f"Could not read {args.html}: {e}")
        return 1

    json.dump(harvest_variables(html), sys.stdout, indent=2)
    sys.stdout.write("\n")
    return 0


def handle_serve(args: argparse.Namespace) -> int:
    from proposal_engine.main import run

    run(host=args.host, port=args.port, reload=args.reload)
    return 0


def main(argv: Iterable[str] | None = None) -> int:
    parser = create_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    setup_logging(get_settings(), stream=sys.stderr)
    return args.handler(args)


if __name__ == "__main__":
    raise SystemExit(main())
