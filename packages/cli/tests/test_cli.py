"""Tests for the CLI entry point."""

import json
import subprocess
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from click.testing import CliRunner

from reviewbot_cli.cli import main
from reviewbot_core.reviewer import ReviewSummary

ENV_VARS = [
    "GITHUB_TOKEN",
    "GITHUB_REPOSITORY",
    "GITHUB_EVENT_NAME",
    "GITHUB_EVENT_PATH",
    "PR_NUMBER",
    "COMMENT_ID",
    "GITLAB_TOKEN",
    "GITLAB_PROJECT_ID",
    "GITLAB_API_URL",
    "DEEPSEEK_API_KEY",
    "DEEPSEEK_API_URL",
    "OPENAI_API_KEY",
    "ANTHROPIC_API_KEY",
    "REVIEWBOT_CONFIG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, mocker):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # Never pick up a real gh CLI session from the machine running the tests.
    mocker.patch("reviewbot_cli.runtime.resolve_github_token", return_value=None)


@pytest.fixture
def github_env(monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "tok")
    monkeypatch.setenv("GITHUB_REPOSITORY", "owner/repo")
    monkeypatch.setenv("DEEPSEEK_API_KEY", "ds-key")


@pytest.fixture
def config_args(tmp_path):
    return ["--config", str(tmp_path / "missing.yml")]


@pytest.fixture
def review_mocks(mocker):
    mocks = MagicMock()
    mocks.build_platform = mocker.patch("reviewbot_cli.commands.review.build_platform")
    mocks.build_reviewer = mocker.patch("reviewbot_cli.commands.review.build_reviewer")
    mocks.run_review = mocker.patch(
        "reviewbot_cli.commands.review.run_review",
        new_callable=AsyncMock,
        return_value=ReviewSummary(pr_id=1, reviewed_files=["src/a.ts"], reasons={"relocated": 1}),
    )
    return mocks


@pytest.fixture
def reply_mocks(mocker):
    mocks = MagicMock()
    mocks.build_platform = mocker.patch("reviewbot_cli.commands.reply.build_platform")
    mocks.build_reviewer = mocker.patch("reviewbot_cli.commands.reply.build_reviewer")
    mocks.handle = mocker.patch(
        "reviewbot_cli.commands.reply.handle_comment_event",
        new_callable=AsyncMock,
        return_value="> q\n\nanswer",
    )
    return mocks


class TestCLIValidation:
    def test_missing_platform_credentials(self, config_args):
        result = CliRunner().invoke(main, [*config_args, "review", "--pr", "1"])
        assert result.exit_code == 2
        assert "Missing platform configuration" in result.output

    def test_missing_deepseek_key(self, config_args, monkeypatch):
        monkeypatch.setenv("GITHUB_TOKEN", "tok")
        monkeypatch.setenv("GITHUB_REPOSITORY", "owner/repo")
        result = CliRunner().invoke(main, [*config_args, "review", "--pr", "1"])
        assert result.exit_code == 2
        assert "DEEPSEEK_API_KEY" in result.output

    def test_missing_openai_key(self, config_args, github_env):
        result = CliRunner().invoke(main, [*config_args, "review", "--pr", "1", "--model", "openai"])
        assert result.exit_code == 2
        assert "OPENAI_API_KEY" in result.output

    def test_missing_pr_number(self, config_args, github_env, review_mocks):
        result = CliRunner().invoke(main, [*config_args, "review"])
        assert result.exit_code == 2
        assert "PR_NUMBER" in result.output
        review_mocks.run_review.assert_not_called()

    def test_invalid_github_pr_number(self, config_args, github_env, review_mocks):
        result = CliRunner().invoke(main, [*config_args, "review", "--pr", "abc"])
        assert result.exit_code == 2
        review_mocks.run_review.assert_not_called()


class TestReviewCommand:
    def test_calls_run_review_with_correct_args(self, config_args, github_env, review_mocks):
        result = CliRunner().invoke(main, [*config_args, "review", "--pr", "42"])

        assert result.exit_code == 0, result.output
        review_mocks.run_review.assert_awaited_once()
        args, kwargs = review_mocks.run_review.await_args
        assert args[0] is review_mocks.build_platform.return_value
        assert args[1] is review_mocks.build_reviewer.return_value
        assert args[2] == 42
        assert kwargs["shadow"] is False

    def test_shadow_flag_passed_through(self, config_args, github_env, review_mocks):
        CliRunner().invoke(main, [*config_args, "review", "--pr", "1", "--shadow"])
        assert review_mocks.run_review.await_args.kwargs["shadow"] is True

    def test_pr_number_from_environment(self, config_args, github_env, review_mocks, monkeypatch):
        monkeypatch.setenv("PR_NUMBER", "17")
        CliRunner().invoke(main, [*config_args, "review"])
        assert review_mocks.run_review.await_args.args[2] == 17

    def test_model_override(self, config_args, github_env, review_mocks, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "ant")
        CliRunner().invoke(main, [*config_args, "review", "--pr", "1", "--model", "anthropic"])
        config = review_mocks.build_reviewer.call_args.args[0]
        assert config["model"] == "anthropic"

    def test_gh_cli_token_fallback(self, config_args, review_mocks, monkeypatch, mocker):
        monkeypatch.setenv("GITHUB_REPOSITORY", "owner/repo")
        monkeypatch.setenv("DEEPSEEK_API_KEY", "ds-key")
        mocker.patch("reviewbot_cli.runtime.resolve_github_token", return_value="gh-token")

        result = CliRunner().invoke(main, [*config_args, "review", "--pr", "1"])

        assert result.exit_code == 0, result.output
        config = review_mocks.build_platform.call_args.args[0]
        assert config["github_token"] == "gh-token"
        assert config["platform"] == "github"

    def test_gitlab_keeps_string_iid(self, config_args, review_mocks, monkeypatch):
        monkeypatch.setenv("GITLAB_TOKEN", "gl")
        monkeypatch.setenv("GITLAB_PROJECT_ID", "99")
        monkeypatch.setenv("DEEPSEEK_API_KEY", "ds-key")
        result = CliRunner().invoke(main, [*config_args, "review", "--pr", "5"])
        assert result.exit_code == 0, result.output
        assert review_mocks.run_review.await_args.args[2] == "5"

    def test_forge_failure_exits_non_zero(self, config_args, github_env, review_mocks):
        review_mocks.run_review.side_effect = RuntimeError("GitHub is down")
        result = CliRunner().invoke(main, [*config_args, "review", "--pr", "1"])
        assert result.exit_code != 0


class TestReplyCommand:
    def test_answers_comment(self, config_args, github_env, reply_mocks):
        result = CliRunner().invoke(main, [*config_args, "reply", "--comment-id", "991"])

        assert result.exit_code == 0, result.output
        args, kwargs = reply_mocks.handle.await_args
        assert args[3] == 991
        assert kwargs["mention_prefixes"] == ["@ai", "/ai"]

    def test_comment_id_from_environment(self, config_args, github_env, reply_mocks, monkeypatch):
        monkeypatch.setenv("COMMENT_ID", "55")
        CliRunner().invoke(main, [*config_args, "reply"])
        assert reply_mocks.handle.await_args.args[3] == 55

    def test_missing_comment_id(self, config_args, github_env, reply_mocks):
        result = CliRunner().invoke(main, [*config_args, "reply"])
        assert result.exit_code == 2
        reply_mocks.handle.assert_not_called()


class TestRunCommand:
    def write_event(self, tmp_path, payload):
        path = tmp_path / "event.json"
        path.write_text(json.dumps(payload))
        return str(path)

    def test_pull_request_event_runs_review(self, tmp_path, config_args, github_env, review_mocks):
        path = self.write_event(tmp_path, {"action": "opened", "pull_request": {"number": 8}})
        result = CliRunner().invoke(main, [*config_args, "run", "--event-name", "pull_request", "--event-path", path])
        assert result.exit_code == 0, result.output
        assert review_mocks.run_review.await_args.args[2] == 8

    def test_review_comment_event_runs_reply(self, tmp_path, config_args, github_env, reply_mocks, monkeypatch):
        path = self.write_event(tmp_path, {"action": "created", "comment": {"id": 123}})
        monkeypatch.setenv("GITHUB_EVENT_NAME", "pull_request_review_comment")
        monkeypatch.setenv("GITHUB_EVENT_PATH", path)

        result = CliRunner().invoke(main, [*config_args, "run"])

        assert result.exit_code == 0, result.output
        assert reply_mocks.handle.await_args.args[3] == 123

    def test_unsupported_event_fails(self, tmp_path, config_args, github_env):
        path = self.write_event(tmp_path, {"ref": "refs/heads/main"})
        result = CliRunner().invoke(main, [*config_args, "run", "--event-name", "push", "--event-path", path])
        assert result.exit_code == 1
        assert "Unsupported event type: push" in result.output

    def test_ignored_gitlab_note(self, tmp_path, config_args, review_mocks, reply_mocks):
        path = self.write_event(tmp_path, {"object_kind": "note", "object_attributes": {"noteable_type": "Issue"}})
        result = CliRunner().invoke(main, [*config_args, "run", "--event-path", path])
        assert result.exit_code == 0, result.output
        assert "Nothing to do" in result.output
        review_mocks.run_review.assert_not_called()
        reply_mocks.handle.assert_not_called()


# ---------------------------------------------------------------------------
# auth.py
# ---------------------------------------------------------------------------


class TestResolveGithubToken:
    def test_returns_env_var_when_set(self, monkeypatch):
        from reviewbot_cli.auth import resolve_github_token

        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        assert resolve_github_token() == "env-token"

    def test_falls_back_to_gh_cli(self):
        from reviewbot_cli.auth import resolve_github_token

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="gh-token\n")
            result = resolve_github_token()
        assert result == "gh-token"

    def test_returns_none_when_gh_not_installed(self):
        from reviewbot_cli.auth import resolve_github_token

        with patch("subprocess.run", side_effect=FileNotFoundError):
            assert resolve_github_token() is None

    def test_returns_none_when_gh_times_out(self):
        from reviewbot_cli.auth import resolve_github_token

        with patch("subprocess.run", side_effect=subprocess.TimeoutExpired(cmd="gh", timeout=5)):
            assert resolve_github_token() is None

    def test_returns_none_when_gh_returns_error(self):
        from reviewbot_cli.auth import resolve_github_token

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=1, stdout="")
            assert resolve_github_token() is None

    def test_returns_none_when_gh_returns_empty(self):
        from reviewbot_cli.auth import resolve_github_token

        with patch("subprocess.run") as mock_run:
            mock_run.return_value = MagicMock(returncode=0, stdout="   ")
            assert resolve_github_token() is None
