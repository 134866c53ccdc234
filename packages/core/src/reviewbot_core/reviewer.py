"""Core PR review orchestration."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone

from rich.console import Console

from reviewbot_core.analysis import analyze_file
from reviewbot_core.forges.base import CodeReviewPlatform
from reviewbot_core.forges.github import GitHubPlatform
from reviewbot_core.forges.gitlab import DEFAULT_API_URL, GitLabPlatform
from reviewbot_core.models import CandidateComment, ChangedFile, ReviewComment, SubmissionResult
from reviewbot_core.providers.anthropic import AnthropicReviewer
from reviewbot_core.providers.base import BaseReviewer
from reviewbot_core.providers.openai import DeepSeekReviewer, OpenAIReviewer
from reviewbot_core.submission import submit_review
from reviewbot_core.utils.code import DEFAULT_EXTENSIONS
from reviewbot_core.validation import validate_comments

console = Console()
logger = logging.getLogger(__name__)


@dataclass
class ReviewSummary:
    """Result returned by run_review."""

    pr_id: int | str
    reviewed_files: list[str] = field(default_factory=list)
    candidate_comments: int = 0
    dropped_comments: int = 0
    comments: list[ReviewComment] = field(default_factory=list)
    submission: SubmissionResult | None = None  # None in shadow mode or when nothing was posted
    reasons: dict[str, int] = field(default_factory=dict)
    elapsed_seconds: float = 0.0
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def _retry_settings(config: dict) -> dict:
    return {
        "retries": config.get("max_retries", 3),
        "retry_delay": config.get("retry_delay", 1.0),
        "retry_backoff": config.get("retry_backoff", 1.0),
    }


def build_reviewer(config: dict) -> BaseReviewer:
    model = config["model"]
    settings = {**_retry_settings(config), "timeout": config.get("llm_timeout", 30)}
    if model == "deepseek":
        return DeepSeekReviewer(api_key=config["deepseek_api_key"], base_url=config.get("deepseek_api_url"), **settings)
    if model == "openai":
        return OpenAIReviewer(api_key=config["openai_api_key"], **settings)
    if model == "anthropic":
        return AnthropicReviewer(api_key=config["anthropic_api_key"], **settings)
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'deepseek', 'openai' or 'anthropic'.")


def build_platform(config: dict) -> CodeReviewPlatform:
    platform = config.get("platform")
    settings = {
        **_retry_settings(config),
        "extensions": config.get("extensions") or DEFAULT_EXTENSIONS,
        "exclude": config.get("exclude") or [],
    }
    if platform == "github":
        return GitHubPlatform(token=config["github_token"], repository=config["github_repository"], **settings)
    if platform == "gitlab":
        return GitLabPlatform(
            token=config["gitlab_token"],
            project_id=config["gitlab_project_id"],
            api_url=config.get("gitlab_api_url") or DEFAULT_API_URL,
            **settings,
        )
    raise ValueError(f"Unsupported platform: {platform!r}")


async def analyze_files(reviewer: BaseReviewer, files: list[ChangedFile], config: dict) -> list[CandidateComment]:
    """Analyse all files concurrently and flatten their comments in file order.

    ``max_concurrent_files`` > 0 caps how many analyses are in flight at once.
    """
    limit = config.get("max_concurrent_files") or 0
    semaphore = asyncio.Semaphore(limit) if limit > 0 else None

    async def one(file: ChangedFile) -> list[CandidateComment]:
        console.print(f"  Analyzing: {file.path}")
        kwargs = {
            "max_chars": config.get("max_chars_per_file", 30000),
            "threshold": config.get("similarity_threshold", 0.3),
            "radius": config.get("search_radius", 30),
        }
        if semaphore is None:
            return await analyze_file(reviewer, file, **kwargs)
        async with semaphore:
            return await analyze_file(reviewer, file, **kwargs)

    per_file = await asyncio.gather(*(one(f) for f in files))
    return [comment for comments in per_file for comment in comments]


def print_shadow_comments(comments: list[ReviewComment]) -> None:
    """Print review comments to the terminal without posting them."""
    if not comments:
        console.print("[yellow]Shadow mode: no comments generated.[/yellow]")
        return
    console.print(f"\n[bold]Shadow review: {len(comments)} comment(s) (not posted)[/bold]\n")
    for c in comments:
        console.print(f"[bold cyan]{c.path}[/bold cyan]  line [bold]{c.line}[/bold]")
        console.print(f"  {c.body}")
        console.print()


async def run_review(
    platform: CodeReviewPlatform,
    reviewer: BaseReviewer,
    pr_id: int | str,
    config: dict,
    shadow: bool = False,
) -> ReviewSummary:
    """Run the full review pipeline for one pull request.

    Fetching the changed files and submitting the review are fatal on failure
    and propagate. A file whose analysis fails contributes no comments.
    A pull request with no surviving comments gets no review at all.
    """
    review_start = time.monotonic()
    console.print(f"Analyzing PR #{pr_id}...")

    files = await platform.get_changed_files(pr_id)
    console.print(f"Found {len(files)} changed file(s) to review")

    candidates = await analyze_files(reviewer, files, config)
    validation = validate_comments(candidates, files, snap_distance=config.get("snap_distance", 5))

    summary = ReviewSummary(
        pr_id=pr_id,
        reviewed_files=[f.path for f in files],
        candidate_comments=len(candidates),
        dropped_comments=len(validation.dropped),
        comments=validation.valid,
        reasons=dict(validation.reasons),
    )

    if shadow:
        print_shadow_comments(validation.valid)
        console.print(f"[bold]Shadow review complete. {len(validation.valid)} comment(s) would be posted.[/bold]")
    elif not validation.valid:
        console.print("[green]No issues found, no review created.[/green]")
    else:
        console.print(f"Creating review with {len(validation.valid)} comment(s)...")
        summary.submission = await submit_review(platform, pr_id, validation.valid)
        if summary.submission.batched:
            console.print(f"[green]Review posted with {summary.submission.submitted} comment(s).[/green]")
        else:
            console.print(
                f"[yellow]Posted {summary.submission.submitted} comment(s) individually, "
                f"{summary.submission.failed} failed.[/yellow]"
            )

    summary.elapsed_seconds = time.monotonic() - review_start
    logger.info("Review of PR #%s finished in %.1fs", pr_id, summary.elapsed_seconds)
    return summary
