"""Call the downstream answer service under a hard deadline and pull a displayable answer out of its response."""

import asyncio
import json
from typing import Any, Iterable, Optional

import httpx

from src.models.upstream import FailureKind, SessionAttributes, UpstreamQuery, UpstreamResult
from src.utils.config import DEFAULT_REPLY_FIELDS, RelayConfig
from src.utils.errors import ConfigMissingError
from src.utils.logging import get_structured_logger, log_timing, sanitize_message_text

logger = get_structured_logger(__name__)

# Bound on nested `body` unwrapping
MAX_UNWRAP_DEPTH = 3

BODY_FIELD = "body"
MESSAGES_FIELD = "messages"


def _clean(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def _from_messages(value: Any) -> Optional[str]:
    """Handle the chat-completion style `messages[0].content` shape."""
    if not isinstance(value, list) or not value:
        return None
    first = value[0]
    if isinstance(first, str):
        return _clean(first)
    if not isinstance(first, dict):
        return None

    content = first.get("content")
    if isinstance(content, str):
        return _clean(content)
    if isinstance(content, list):
        for block in content:
            if isinstance(block, dict):
                text = _clean(block.get("text"))
            else:
                text = _clean(block)
            if text:
                return text
    return None


def _from_body(value: Any, reply_fields: tuple[str, ...], depth: int) -> Optional[str]:
    """`body` may be an object, a JSON-encoded string, or plain text."""
    if isinstance(value, dict):
        return extract_message(value, reply_fields, depth + 1)
    if not isinstance(value, str):
        return None

    try:
        decoded = json.loads(value)
    except json.JSONDecodeError:
        return _clean(value)

    if isinstance(decoded, dict):
        return extract_message(decoded, reply_fields, depth + 1)
    if isinstance(decoded, str):
        return _clean(decoded)
    return _clean(value)


def extract_message(
    data: Any,
    reply_fields: Iterable[str] = DEFAULT_REPLY_FIELDS,
    depth: int = 0
) -> Optional[str]:
    """
    Find the answer text in a response envelope whose shape is not fixed.

    Fields are checked in `reply_fields` order; the first non-empty string wins.
    `body` and `messages` get shape-aware handling, any other name is read as a
    plain string field. Returns None when nothing usable is found.
    """
    if depth > MAX_UNWRAP_DEPTH:
        logger.warning("Response unwrapping depth exceeded", max_depth=MAX_UNWRAP_DEPTH)
        return None
    if isinstance(data, str):
        return _clean(data)
    if not isinstance(data, dict):
        return None

    reply_fields = tuple(reply_fields)
    for field in reply_fields:
        value = data.get(field)
        if value is None:
            continue
        if field == BODY_FIELD:
            candidate = _from_body(value, reply_fields, depth)
        elif field == MESSAGES_FIELD:
            candidate = _from_messages(value)
        else:
            candidate = _clean(value)
        if candidate:
            return candidate
    return None


class UpstreamInvoker:
    """Single POST to the answer service, bounded by the configured timeout."""

    def __init__(self, config: RelayConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    def build_query(self, text: str) -> UpstreamQuery:
        return UpstreamQuery(
            query=text,
            session_attributes=SessionAttributes(
                auth_token=self.config.upstream_auth_token,
                product=self.config.product,
                request_source=self.config.request_source,
            ),
        )

    def _request_parts(self, query: UpstreamQuery) -> tuple[dict[str, Any], dict[str, str]]:
        placement = self.config.auth_placement
        body = query.to_wire(
            query_field=self.config.query_field,
            include_auth_token=placement in ("body", "both"),
        )
        headers = {"Content-Type": "application/json"}
        if placement in ("header", "both"):
            headers["Authorization"] = f"Bearer {self.config.secret('upstream_auth_token')}"
        return body, headers

    async def _post(self, body: dict[str, Any], headers: dict[str, str]) -> httpx.Response:
        timeout = httpx.Timeout(self.config.upstream_timeout_seconds)
        async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
            return await client.post(self.config.upstream_url, json=body, headers=headers)

    async def invoke(self, text: str) -> UpstreamResult:
        """
        Ask the answer service and return its message or a failure kind.

        Never raises for network or response problems; the in-flight request is
        cancelled when the deadline passes.
        """
        if not self.config.upstream_url:
            raise ConfigMissingError(["UPSTREAM_API_URL"])

        query = self.build_query(text)
        body, headers = self._request_parts(query)
        deadline = self.config.upstream_timeout_seconds
        upstream_host = httpx.URL(self.config.upstream_url).host

        try:
            with log_timing("upstream_invoke", logger=logger, upstream_host=upstream_host):
                response = await asyncio.wait_for(self._post(body, headers), timeout=deadline)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning(
                "Upstream call timed out",
                upstream_host=upstream_host,
                timeout_seconds=deadline
            )
            return UpstreamResult.failed(FailureKind.TIMEOUT)
        except (httpx.TransportError, httpx.InvalidURL) as e:
            logger.error(
                "Upstream service unreachable",
                upstream_host=upstream_host,
                error_type=type(e).__name__,
                error=str(e)
            )
            return UpstreamResult.failed(FailureKind.UNREACHABLE)

        return self.interpret(response)

    def interpret(self, response: httpx.Response) -> UpstreamResult:
        """Turn an HTTP response into an UpstreamResult."""
        status_code = response.status_code
        if not response.is_success:
            logger.warning(
                "Upstream returned error status",
                status_code=status_code,
                body_preview=sanitize_message_text(response.text, max_length=200)
            )
            return UpstreamResult.failed(FailureKind.BAD_STATUS, status_code=status_code)

        text = response.text
        try:
            data = json.loads(text)
        except json.JSONDecodeError:
            # Plain-text answer
            message = _clean(text)
        else:
            message = extract_message(data, self.config.reply_fields)

        if not message:
            logger.warning(
                "Upstream response carried no reply",
                status_code=status_code,
                body_preview=sanitize_message_text(text, max_length=200)
            )
            return UpstreamResult.failed(FailureKind.NO_REPLY, status_code=status_code)

        logger.info(
            "Upstream reply extracted",
            status_code=status_code,
            reply_length=len(message),
            reply_preview=sanitize_message_text(message, max_length=100)
        )
        return UpstreamResult.success(message, status_code=status_code)
