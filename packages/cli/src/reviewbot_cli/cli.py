"""CLI entry point for reviewbot.

Commands:
  review   run an AI review on a pull request / merge request
  reply    answer a follow-up question left under a bot comment
  run      dispatch the current CI event to review or reply
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from reviewbot_cli.commands.reply import reply_cmd
from reviewbot_cli.commands.review import review_cmd
from reviewbot_cli.commands.run import run_cmd

console = Console()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=verbose)],
        force=True,
    )
    # Keep HTTP client chatter out of INFO output.
    for noisy in ("urllib3", "httpx", "openai", "anthropic", "github"):
        logging.getLogger(noisy).setLevel(logging.DEBUG if verbose else logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("reviewbot"),
    prog_name="reviewbot",
)
@click.option(
    "--config",
    "config_path",
    default=".reviewbot.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="REVIEWBOT_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """CI bot that reviews pull request diffs with an LLM and answers follow-up questions."""
    from reviewbot_store.memory import InMemoryStore

    _setup_logging(verbose)
    ctx.ensure_object(dict)

    store = InMemoryStore()
    ctx.obj["config_path"] = config_path
    ctx.obj["store"] = store
    ctx.call_on_close(store.close)


main.add_command(review_cmd)
main.add_command(reply_cmd)
main.add_command(run_cmd)
