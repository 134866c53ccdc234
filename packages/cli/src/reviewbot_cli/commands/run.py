"""run command: dispatch the current CI event."""

from __future__ import annotations

import click
from rich.console import Console

from reviewbot_cli.commands.reply import answer_comment
from reviewbot_cli.commands.review import review_pull_request
from reviewbot_cli.runtime import prepare_config
from reviewbot_core.events import REVIEW, UnsupportedEventError, load_event_payload, parse_event

console = Console()


@click.command("run")
@click.option(
    "--event-name",
    envvar="GITHUB_EVENT_NAME",
    default=None,
    help="CI event name. Defaults to $GITHUB_EVENT_NAME; GitLab payloads carry their own.",
)
@click.option(
    "--event-path",
    envvar="GITHUB_EVENT_PATH",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Path to the JSON event payload. Defaults to $GITHUB_EVENT_PATH.",
)
@click.option("--shadow", "-s", is_flag=True, help="Dry-run mode for review events.")
@click.pass_context
def run_cmd(ctx, event_name: str | None, event_path: str | None, shadow: bool):
    """Review a pull request or answer a comment, depending on the CI event."""
    try:
        action = parse_event(event_name, load_event_payload(event_path))
    except UnsupportedEventError as e:
        raise click.ClickException(str(e)) from e

    if action is None:
        console.print("[yellow]Nothing to do for this event.[/yellow]")
        return

    config = prepare_config(ctx.obj["config_path"])
    console.print(f"Dispatching {action.kind} for {action.target}")
    if action.kind == REVIEW:
        review_pull_request(config, action.target, shadow=shadow)
    else:
        answer_comment(config, ctx.obj["store"], action.target)
