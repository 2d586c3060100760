"""Slack request signature verification (signing secret v0 scheme)."""

import hmac
import hashlib
import time
from typing import Optional, Union

from src.models.relay_request import InboundRequest
from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

SIGNATURE_VERSION = "v0"
TIMESTAMP_HEADER = "x-slack-request-timestamp"
SIGNATURE_HEADER = "x-slack-signature"
REPLAY_WINDOW_SECONDS = 300


def compute_slack_signature(secret: str, timestamp: str, body: Union[bytes, str]) -> str:
    """Compute the `v0=<hex>` signature Slack sends for a request body."""
    if isinstance(body, str):
        body = body.encode("utf-8")
    base = f"{SIGNATURE_VERSION}:{timestamp}:".encode("utf-8") + body
    digest = hmac.new(secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    secret: str,
    timestamp: Optional[str],
    body: Union[bytes, str],
    signature: Optional[str],
    now: Optional[float] = None
) -> bool:
    """
    Verify a Slack request signature using HMAC-SHA256.
    
    Pure function of (secret, timestamp, body, signature) and the clock. Fails
    closed on missing inputs, unparseable timestamps and anything outside the
    5 minute replay window.
    """
    if not secret or not timestamp or not signature:
        return False
    
    try:
        ts = int(timestamp)
    except ValueError:
        return False
    
    current_time = int(time.time() if now is None else now)
    if abs(current_time - ts) > REPLAY_WINDOW_SECONDS:
        logger.warning(
            "Slack request timestamp outside replay window",
            skew_seconds=current_time - ts
        )
        return False
    
    expected = compute_slack_signature(secret, timestamp, body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def verify_slack_request(secret: str, request: InboundRequest, now: Optional[float] = None) -> bool:
    """Verify an inbound request using its timestamp and signature headers."""
    timestamp = request.header(TIMESTAMP_HEADER)
    signature = request.header(SIGNATURE_HEADER)
    
    if not timestamp or not signature:
        logger.warning(
            "Slack signature headers missing",
            has_timestamp=bool(timestamp),
            has_signature=bool(signature)
        )
        return False
    
    result = verify_slack_signature(secret, timestamp, request.body, signature, now=now)
    if not result:
        logger.warning(
            "Slack signature verification failed",
            body_length=len(request.body),
            signature_preview=signature[:8]
        )
    return result
