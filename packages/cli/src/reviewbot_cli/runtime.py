"""Shared setup for CLI commands: configuration, credentials and the event loop."""

from __future__ import annotations

import asyncio

import click

from reviewbot_cli.auth import resolve_github_token


def prepare_config(config_path: str, **overrides) -> dict:
    """Load and validate the configuration, turning problems into usage errors.

    Raises click.UsageError before any network activity when credentials or
    provider settings are missing.
    """
    from reviewbot_core.config import ConfigError, detect_platform, load_config, validate_config

    try:
        config = load_config(config_path, cli_overrides=overrides)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e

    if not config.get("github_token") and config.get("platform") in (None, "github"):
        # Local runs: reuse the gh CLI session instead of asking for a PAT.
        token = resolve_github_token()
        if token:
            config["github_token"] = token
            if not config.get("platform"):
                config["platform"] = detect_platform(config)

    try:
        validate_config(config)
    except ConfigError as e:
        raise click.UsageError(str(e)) from e
    return config


def run_async(coro):
    """Run a coroutine to completion from a synchronous click command."""
    return asyncio.run(coro)
