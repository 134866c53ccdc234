"""Tests for turning model findings into placed comments."""

import asyncio
from unittest.mock import AsyncMock

from reviewbot_core.analysis import (
    FOLLOW_UP_HINT,
    SYSTEM_PROMPT,
    analyze_file,
    format_comment_body,
    map_issues_to_comments,
    parse_issues,
)
from reviewbot_core.models import ChangedFile, RawIssue
from reviewbot_core.providers.base import LLMResponseError

CONTENT = "const x = 1;\nconst y = eval(z);\n"
EVAL_ISSUE = {"line": 2, "code": "const y = eval(z);", "type": "security", "description": "eval is unsafe"}


def make_reviewer(payload=None, side_effect=None):
    reviewer = AsyncMock()
    reviewer.analyze = AsyncMock(return_value=payload, side_effect=side_effect)
    return reviewer


class TestFormatCommentBody:
    def test_security_header(self):
        body = format_comment_body("security", "eval is unsafe")
        assert body.startswith("### 🔒 Security\neval is unsafe")
        assert body.endswith(f"*{FOLLOW_UP_HINT}*")

    def test_quality_and_performance_icons(self):
        assert format_comment_body("quality", "d").startswith("### 📝 Quality")
        assert format_comment_body("performance", "d").startswith("### ⚡ Performance")


class TestParseIssues:
    def test_valid_issue(self):
        issues = parse_issues({"issues": [EVAL_ISSUE]})
        assert issues == [RawIssue(line=2, code="const y = eval(z);", category="security", description="eval is unsafe")]

    def test_category_is_case_insensitive(self):
        issues = parse_issues({"issues": [{**EVAL_ISSUE, "type": "Security"}]})
        assert issues[0].category == "security"

    def test_malformed_entries_dropped(self):
        payload = {
            "issues": [
                EVAL_ISSUE,
                {"line": "2", "code": "x", "type": "quality", "description": "d"},
                {"line": True, "code": "x", "type": "quality", "description": "d"},
                {"line": 3, "code": "x", "type": "style", "description": "d"},
                {"line": 3, "type": "quality", "description": "d"},
                "not a dict",
            ]
        }
        assert len(parse_issues(payload)) == 1

    def test_missing_issues_key(self):
        assert parse_issues({"problems": []}) == []
        assert parse_issues({"issues": "none"}) == []


class TestMapIssuesToComments:
    def test_places_issue_on_matching_line(self):
        issue = RawIssue(line=2, code="const y = eval(z);", category="security", description="eval is unsafe")
        comments = map_issues_to_comments("a.ts", CONTENT, [issue])
        assert len(comments) == 1
        assert comments[0].line == 2
        assert comments[0].similarity == 0

    def test_reanchors_off_by_some_lines(self):
        content = "\n".join(["// filler"] * 10 + ["const y = eval(z);"])
        issue = RawIssue(line=4, code="const y = eval(z);", category="security", description="d")
        comments = map_issues_to_comments("a.ts", content, [issue])
        assert comments[0].line == 11

    def test_drops_issue_whose_code_is_not_found(self):
        issue = RawIssue(line=1, code="fetchUsers().then(render)", category="quality", description="d")
        assert map_issues_to_comments("a.ts", CONTENT, [issue]) == []

    def test_threshold_is_configurable(self):
        issue = RawIssue(line=1, code="const x = 2;", category="quality", description="d")
        assert map_issues_to_comments("a.ts", CONTENT, [issue], threshold=0.0) == []
        assert len(map_issues_to_comments("a.ts", CONTENT, [issue], threshold=0.3)) == 1


class TestAnalyzeFile:
    def test_end_to_end_single_security_comment(self):
        reviewer = make_reviewer({"issues": [EVAL_ISSUE]})
        comments = asyncio.run(analyze_file(reviewer, ChangedFile("src/a.ts", CONTENT)))
        assert len(comments) == 1
        assert comments[0].path == "src/a.ts"
        assert comments[0].line == 2
        assert comments[0].body.startswith("### 🔒 Security")
        reviewer.analyze.assert_awaited_once_with(SYSTEM_PROMPT, CONTENT)

    def test_malformed_response_yields_no_comments(self):
        reviewer = make_reviewer(side_effect=LLMResponseError("not json"))
        assert asyncio.run(analyze_file(reviewer, ChangedFile("a.ts", CONTENT))) == []

    def test_exhausted_retries_yield_no_comments(self):
        reviewer = make_reviewer(side_effect=ConnectionError("down"))
        assert asyncio.run(analyze_file(reviewer, ChangedFile("a.ts", CONTENT))) == []

    def test_content_is_truncated(self):
        reviewer = make_reviewer({"issues": []})
        asyncio.run(analyze_file(reviewer, ChangedFile("a.ts", "x" * 100), max_chars=10))
        assert reviewer.analyze.await_args.args[1] == "x" * 10

    def test_empty_issue_list(self):
        reviewer = make_reviewer({"issues": []})
        assert asyncio.run(analyze_file(reviewer, ChangedFile("a.ts", CONTENT))) == []


class TestRawIssueLineTypes:
    def test_whole_float_line_accepted(self):
        issues = parse_issues({"issues": [{**EVAL_ISSUE, "line": 2.0}]})
        assert issues[0].line == 2
        assert isinstance(issues[0].line, int)

    def test_fractional_line_rejected(self):
        assert parse_issues({"issues": [{**EVAL_ISSUE, "line": 2.5}]}) == []
