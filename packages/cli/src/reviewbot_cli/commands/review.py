"""review command: run an AI review on a pull request."""

from __future__ import annotations

import click
from rich.console import Console

from reviewbot_cli.runtime import prepare_config, run_async
from reviewbot_core.config import MODELS, PLATFORMS
from reviewbot_core.reviewer import ReviewSummary, build_platform, build_reviewer, run_review

console = Console()


def print_summary(summary: ReviewSummary) -> None:
    console.print(
        f"\n[bold]PR #{summary.pr_id}:[/bold] {len(summary.reviewed_files)} file(s) analysed, "
        f"{summary.candidate_comments} candidate comment(s), {summary.dropped_comments} dropped "
        f"({summary.elapsed_seconds:.1f}s)"
    )
    for reason, count in sorted(summary.reasons.items()):
        console.print(f"  {reason}: {count}")


def review_pull_request(config: dict, pr_id, shadow: bool = False) -> ReviewSummary:
    platform = build_platform(config)
    reviewer = build_reviewer(config)
    summary = run_async(run_review(platform, reviewer, pr_id, config, shadow=shadow))
    print_summary(summary)
    return summary


@click.command("review")
@click.option(
    "--pr",
    "pr_id",
    default=None,
    help="Pull request number (GitHub) or merge request IID (GitLab). Defaults to $PR_NUMBER.",
)
@click.option(
    "--platform",
    type=click.Choice(PLATFORMS),
    default=None,
    help="Code hosting platform. Detected from credentials when omitted.",
)
@click.option(
    "--model",
    type=click.Choice(MODELS),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print review comments without posting them.",
)
@click.pass_context
def review_cmd(ctx, pr_id: str | None, platform: str | None, model: str | None, shadow: bool):
    """Review the changed files of a pull request and post inline comments.

    \b
    Required environment variables:
      GITHUB_TOKEN + GITHUB_REPOSITORY       for GitHub (or use gh CLI)
      GITLAB_TOKEN + GITLAB_PROJECT_ID       for GitLab
      DEEPSEEK_API_KEY / OPENAI_API_KEY / ANTHROPIC_API_KEY   for the chosen model
    """
    config = prepare_config(ctx.obj["config_path"], platform=platform, model=model)

    pr_id = pr_id or config.get("pr_number")
    if not pr_id:
        raise click.UsageError("No pull request given. Pass --pr or set PR_NUMBER.")
    if config["platform"] == "github":
        if not str(pr_id).isdigit():
            raise click.UsageError(f"Invalid pull request number: {pr_id}")
        pr_id = int(pr_id)

    review_pull_request(config, pr_id, shadow=shadow)
