"""Command line interface for the flow planner."""

import json
import logging
from pathlib import Path
from typing import Any, Optional

import click

from flowpilot.core.exceptions import CatalogError, PlanningError
from flowpilot.core.llm_config import get_default_llm_model, get_llm_setup_help
from flowpilot.core.settings import SettingsManager
from flowpilot.planning.error_handler import classify_error
from flowpilot.planning.events import CallbackEventSink
from flowpilot.planning.ir_models import ExplicitStep, ExplicitStepSequence, PlanOptions, StepKind
from flowpilot.planning.planner import build_planner

from .logging_config import configure_logging

logger = logging.getLogger(__name__)


def _parse_step_sequence(
    ctx: click.Context, param: click.Parameter, values: tuple[str, ...]
) -> Optional[ExplicitStepSequence]:
    """Parse repeated ``--step TYPE:description`` options."""
    if not values:
        return None

    steps = []
    for value in values:
        kind, sep, description = value.partition(":")
        kind = kind.strip().upper()
        if not sep or not description.strip():
            raise click.BadParameter(f"'{value}' must look like TYPE:description", ctx=ctx, param=param)
        if kind not in StepKind.__members__:
            raise click.BadParameter(
                f"Unknown step type '{kind}'. Use one of: {', '.join(StepKind.__members__)}", ctx=ctx, param=param
            )
        steps.append(ExplicitStep(type=StepKind(kind), description=description.strip()))
    return ExplicitStepSequence(steps=steps)


def _echo_event(message: dict[str, Any]) -> None:
    click.echo(json.dumps(message), err=True)


@click.command()
@click.pass_context
@click.argument("request", nargs=-1, required=True)
@click.option(
    "--catalog",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Piece catalog JSON file (default: FLOWPILOT_CATALOG or settings)",
)
@click.option("--model", "-m", help="LLM model for planning (default: auto-detect from API keys)")
@click.option("--threshold", type=float, help="Minimum relevance score for pieces")
@click.option("--custom-prompt", help="Instructions replacing the default planning prompt")
@click.option(
    "--custom-prompt-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Read the custom planning instructions from a file",
)
@click.option(
    "--step",
    "step_sequence",
    multiple=True,
    callback=_parse_step_sequence,
    help="Exact step the plan must contain, as TYPE:description (repeatable, in order)",
)
@click.option("--events", "-e", is_flag=True, help="Stream progress events to stderr as JSON lines")
@click.option(
    "--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Write the flow to a file"
)
@click.option("--verbose", "-v", is_flag=True, help="Show detailed planning output")
def main(
    ctx: click.Context,
    request: tuple[str, ...],
    catalog: Optional[Path],
    model: Optional[str],
    threshold: Optional[float],
    custom_prompt: Optional[str],
    custom_prompt_file: Optional[Path],
    step_sequence: Optional[ExplicitStepSequence],
    events: bool,
    output: Optional[Path],
    verbose: bool,
) -> None:
    """Plan an automation flow from a natural language REQUEST.

    \b
    Examples:
      flowpilot --catalog pieces.json "Send a Slack message when a row is added to a sheet"
      flowpilot -e --step "TRIGGER:new row" --step "ACTION:post to slack" "notify my team"
    """
    configure_logging(verbose)

    user_input = " ".join(request).strip()
    if not user_input:
        raise click.BadParameter("Request must not be empty", ctx=ctx, param_hint="REQUEST")

    settings = SettingsManager().load()
    if catalog is not None:
        settings.retrieval.catalog_path = catalog

    if not model and not settings.llm.model and get_default_llm_model() is None:
        click.echo(get_llm_setup_help(), err=True)
        ctx.exit(1)

    if custom_prompt_file is not None:
        custom_prompt = custom_prompt_file.read_text(encoding="utf-8")

    options = PlanOptions(relevance_threshold=threshold, custom_prompt=custom_prompt, step_sequence=step_sequence)

    try:
        planner = build_planner(settings, model=model)
    except CatalogError as e:
        click.echo(f"❌ {e}", err=True)
        ctx.exit(1)

    observer = CallbackEventSink(_echo_event) if events else None

    try:
        flow_document = planner.plan(user_input, observer, options)
    except PlanningError as e:
        logger.debug(f"Planning failed: {e}", exc_info=True)
        click.echo(classify_error(e, context=e.stage).format_for_cli(verbose=verbose), err=True)
        ctx.exit(1)

    rendered = json.dumps(flow_document.model_dump(mode="json", by_alias=True), indent=2)
    if output is not None:
        output.write_text(rendered + "\n", encoding="utf-8")
        click.echo(f"✅ Flow '{flow_document.name}' written to {output}", err=True)
    else:
        click.echo(rendered)
