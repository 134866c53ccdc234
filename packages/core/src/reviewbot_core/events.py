"""Translate CI webhook payloads into review or reply actions."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from reviewbot_core.forges.gitlab import make_note_id

logger = logging.getLogger(__name__)

REVIEW = "review"
REPLY = "reply"


class UnsupportedEventError(ValueError):
    pass


@dataclass(frozen=True)
class Action:
    kind: str  # REVIEW or REPLY
    target: int | str  # pull request id for REVIEW, comment id for REPLY


def load_event_payload(event_path: str | None) -> dict:
    if not event_path:
        return {}
    with open(Path(event_path), encoding="utf-8") as f:
        payload = json.load(f)
    if not isinstance(payload, dict):
        raise UnsupportedEventError(f"Event payload in {event_path} is not a JSON object")
    return payload


def parse_event(event_name: str | None, payload: dict) -> Action | None:
    """Map an event to the action it triggers.

    Returns None for events that are understood but need no work, such as a
    GitLab note on an issue. Raises UnsupportedEventError for anything else.
    """
    # GitLab webhooks carry the event kind in the payload itself.
    event_name = event_name or payload.get("object_kind")
    try:
        if event_name == "pull_request":
            return Action(REVIEW, payload["pull_request"]["number"])
        if event_name == "merge_request":
            return Action(REVIEW, payload["object_attributes"]["iid"])
        if event_name == "pull_request_review_comment":
            return Action(REPLY, payload["comment"]["id"])
        if event_name == "note":
            attributes = payload["object_attributes"]
            if attributes.get("noteable_type") != "MergeRequest":
                logger.info("Ignoring note for %s", attributes.get("noteable_type"))
                return None
            note_id = make_note_id(payload["merge_request"]["iid"], attributes["discussion_id"], attributes["id"])
            return Action(REPLY, note_id)
    except (KeyError, TypeError) as e:
        raise UnsupportedEventError(f"Malformed {event_name} event payload: missing {e}") from e
    raise UnsupportedEventError(f"Unsupported event type: {event_name}")
