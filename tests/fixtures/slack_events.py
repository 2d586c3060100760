"""Slack event fixtures."""

from typing import Dict, Any


def slack_url_verification_challenge(challenge: str = "test-challenge-token") -> Dict[str, Any]:
    """Slack URL verification challenge payload."""
    return {
        "type": "url_verification",
        "challenge": challenge,
        "token": "test-token"
    }


def slack_app_mention_event(text: str = "<@UBOT> hello", channel: str = "C1", ts: str = "1") -> Dict[str, Any]:
    """Slack app_mention event."""
    return {
        "type": "event_callback",
        "event_id": "Ev0001",
        "event": {
            "type": "app_mention",
            "channel": channel,
            "user": "U123456",
            "text": text,
            "ts": ts
        },
        "team_id": "T123456"
    }


def slack_message_event(text: str = "Test message", channel_type: str = "channel", **extra: Any) -> Dict[str, Any]:
    """Slack message event."""
    event = {
        "type": "message",
        "channel": "D123456" if channel_type == "im" else "C123456",
        "channel_type": channel_type,
        "user": "U123456",
        "text": text,
        "ts": "1700000000.000100"
    }
    event.update(extra)
    return {
        "type": "event_callback",
        "event_id": "Ev0002",
        "event": event,
        "team_id": "T123456"
    }


def slack_block_actions_form_body(action_id: str = "approve") -> str:
    """Interactive component delivery: form-encoded with a JSON `payload` field."""
    import json
    from urllib.parse import urlencode
    payload = {
        "type": "block_actions",
        "user": {"id": "U123456"},
        "actions": [{"action_id": action_id}],
    }
    return urlencode({"payload": json.dumps(payload)})
