"""reply command: answer a follow-up question under a bot comment."""

from __future__ import annotations

import click
from rich.console import Console

from reviewbot_cli.runtime import prepare_config, run_async
from reviewbot_core.config import MODELS, PLATFORMS
from reviewbot_core.reply import handle_comment_event
from reviewbot_core.reviewer import build_platform, build_reviewer

console = Console()


def answer_comment(config: dict, store, comment_id) -> str | None:
    platform = build_platform(config)
    reviewer = build_reviewer(config)
    body = run_async(
        handle_comment_event(
            platform,
            reviewer,
            store,
            comment_id,
            mention_prefixes=config.get("mention_prefixes") or ("@ai", "/ai"),
        )
    )
    if body is None:
        console.print(f"[yellow]Comment {comment_id} needs no reply.[/yellow]")
    else:
        console.print(f"[green]Replied to comment {comment_id}.[/green]")
    return body


@click.command("reply")
@click.option(
    "--comment-id",
    "comment_id",
    default=None,
    help='Comment id (GitHub) or "mr_iid:discussion_id:note_id" (GitLab). Defaults to $COMMENT_ID.',
)
@click.option("--platform", type=click.Choice(PLATFORMS), default=None, help="Code hosting platform.")
@click.option("--model", type=click.Choice(MODELS), default=None, help="AI model provider.")
@click.pass_context
def reply_cmd(ctx, comment_id: str | None, platform: str | None, model: str | None):
    """Answer a question that starts with @ai or /ai under a bot review comment."""
    config = prepare_config(ctx.obj["config_path"], platform=platform, model=model)

    comment_id = comment_id or config.get("comment_id")
    if not comment_id:
        raise click.UsageError("No comment given. Pass --comment-id or set COMMENT_ID.")
    if config["platform"] == "github":
        if not str(comment_id).isdigit():
            raise click.UsageError(f"Invalid comment id: {comment_id}")
        comment_id = int(comment_id)

    answer_comment(config, ctx.obj["store"], comment_id)
