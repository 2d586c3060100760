"""Decode Slack request bodies into payload dicts."""

import json
from typing import Any
from urllib.parse import parse_qs

from src.models.relay_request import InboundRequest
from src.utils.errors import MalformedPayloadError

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


def parse_slack_payload(request: InboundRequest) -> dict[str, Any]:
    """
    Parse the request body.
    
    Event API envelopes arrive as JSON. Interactive components arrive form-encoded
    with the JSON envelope in a `payload` field. An empty body decodes to {}.
    Raises MalformedPayloadError for anything else.
    """
    if not request.body:
        return {}
    
    try:
        text = request.body.decode("utf-8")
    except UnicodeDecodeError as e:
        raise MalformedPayloadError("Body is not valid UTF-8") from e
    
    if request.content_type == FORM_CONTENT_TYPE:
        fields = parse_qs(text, keep_blank_values=True)
        raw_payload = fields.get("payload", [None])[0]
        if raw_payload is None:
            # Slash commands carry plain form fields without a JSON payload
            return {key: values[0] for key, values in fields.items()}
        text = raw_payload
    
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as e:
        raise MalformedPayloadError(f"Body is not valid JSON: {e.msg}") from e
    
    if not isinstance(payload, dict):
        raise MalformedPayloadError("Payload is not a JSON object")
    return payload
