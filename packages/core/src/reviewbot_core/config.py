import os
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "platform": None,  # None = detect from credentials ("github" or "gitlab")
    "model": "deepseek",
    "max_chars_per_file": 30000,
    "similarity_threshold": 0.3,
    "search_radius": 30,
    "snap_distance": 5,
    "max_retries": 3,
    "retry_delay": 1.0,
    "retry_backoff": 1.0,  # 2.0 doubles the delay after each failed attempt
    "llm_timeout": 30,
    "max_concurrent_files": 0,  # 0 = analyse every file at once
    "extensions": [".ts", ".tsx", ".js", ".jsx"],
    "exclude": [],  # fnmatch patterns or directory names to skip (e.g. "vendor/", "*.min.js")
    "mention_prefixes": ["@ai", "/ai"],
}

PLATFORMS = ("github", "gitlab")
MODELS = ("deepseek", "openai", "anthropic")

_LLM_KEYS = {
    "deepseek": ("deepseek_api_key", "DEEPSEEK_API_KEY"),
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
}

# config key -> environment variable
_ENV_VARS = {
    "github_token": "GITHUB_TOKEN",
    "github_repository": "GITHUB_REPOSITORY",
    "github_event_name": "GITHUB_EVENT_NAME",
    "github_event_path": "GITHUB_EVENT_PATH",
    "pr_number": "PR_NUMBER",
    "comment_id": "COMMENT_ID",
    "gitlab_token": "GITLAB_TOKEN",
    "gitlab_project_id": "GITLAB_PROJECT_ID",
    "gitlab_api_url": "GITLAB_API_URL",
    "deepseek_api_key": "DEEPSEEK_API_KEY",
    "deepseek_api_url": "DEEPSEEK_API_URL",
    "openai_api_key": "OPENAI_API_KEY",
    "anthropic_api_key": "ANTHROPIC_API_KEY",
}


class ConfigError(ValueError):
    """Missing or inconsistent configuration. Fatal before any network call."""


def load_config(config_path: str = ".reviewbot.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .reviewbot.yml in the current directory
      3. CLI argument overrides

    Credentials and CI context always come from the environment.
    """
    config = {
        **DEFAULT_CONFIG,
        "extensions": list(DEFAULT_CONFIG["extensions"]),
        "exclude": list(DEFAULT_CONFIG["exclude"]),
        "mention_prefixes": list(DEFAULT_CONFIG["mention_prefixes"]),
    }

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping, got {type(file_config).__name__}")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    for key, env_var in _ENV_VARS.items():
        config[key] = os.environ.get(env_var)

    if not config.get("platform"):
        config["platform"] = detect_platform(config)

    return config


def detect_platform(config: dict) -> Optional[str]:
    if config.get("github_token") and config.get("github_repository"):
        return "github"
    if config.get("gitlab_token") and config.get("gitlab_project_id"):
        return "gitlab"
    return None


def validate_config(config: dict) -> None:
    """Raise ConfigError unless the config is enough to talk to a forge and a model."""
    platform = config.get("platform")
    if platform is None:
        raise ConfigError(
            "Missing platform configuration. Set either GITHUB_TOKEN and GITHUB_REPOSITORY "
            "or GITLAB_TOKEN and GITLAB_PROJECT_ID."
        )
    if platform not in PLATFORMS:
        raise ConfigError(f"Unsupported platform: {platform!r}. Choose 'github' or 'gitlab'.")
    if platform == "github" and not (config.get("github_token") and config.get("github_repository")):
        raise ConfigError("GITHUB_TOKEN and GITHUB_REPOSITORY are required for the github platform.")
    if platform == "gitlab" and not (config.get("gitlab_token") and config.get("gitlab_project_id")):
        raise ConfigError("GITLAB_TOKEN and GITLAB_PROJECT_ID are required for the gitlab platform.")

    model = config.get("model")
    if model not in MODELS:
        raise ConfigError(f"Unknown model provider: {model!r}. Choose one of {', '.join(MODELS)}.")
    key, env_var = _LLM_KEYS[model]
    if not config.get(key):
        raise ConfigError(f"{env_var} environment variable is not set.")
