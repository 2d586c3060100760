"""Slack URL verification handshake."""

from typing import Any, Optional

from src.models.relay_request import RelayResponse

URL_VERIFICATION_TYPE = "url_verification"


def is_url_verification(payload: dict[str, Any]) -> bool:
    return (
        isinstance(payload, dict)
        and payload.get("type") == URL_VERIFICATION_TYPE
        and bool(payload.get("challenge"))
    )


def challenge_response(payload: dict[str, Any]) -> Optional[RelayResponse]:
    """Echo the challenge token verbatim, or None when the payload is not a handshake."""
    if not is_url_verification(payload):
        return None
    return RelayResponse.json_body({"challenge": payload["challenge"]})
