"""Test helper functions."""

import json
import hmac
import hashlib
import time
from io import BytesIO
from typing import Any, Callable, Dict, NamedTuple, Optional, Union

import httpx

from src.models.relay_request import InboundRequest


def generate_slack_signature(secret: str, timestamp: str, body: Union[str, bytes]) -> str:
    """Generate a valid Slack signature for testing."""
    if isinstance(body, str):
        body = body.encode('utf-8')
    sig_basestring = f"v0:{timestamp}:".encode('utf-8') + body
    signature = hmac.new(
        secret.encode('utf-8'),
        sig_basestring,
        hashlib.sha256
    ).hexdigest()
    return f"v0={signature}"


def signed_headers(
    secret: str,
    body: Union[str, bytes],
    timestamp: Optional[str] = None,
    content_type: str = "application/json"
) -> Dict[str, str]:
    """Headers Slack would send for `body`."""
    if timestamp is None:
        timestamp = str(int(time.time()))
    return {
        "X-Slack-Request-Timestamp": timestamp,
        "X-Slack-Signature": generate_slack_signature(secret, timestamp, body),
        "Content-Type": content_type,
    }


def create_slack_event(
    event_type: str = "app_mention",
    text: str = "<@UBOT> hello",
    channel: str = "C123456",
    user: str = "U123456",
    ts: str = "1700000000.000100",
    **extra: Any
) -> Dict[str, Any]:
    """Create a Slack event_callback envelope for testing."""
    event = {
        "type": event_type,
        "channel": channel,
        "user": user,
        "text": text,
        "ts": ts,
    }
    event.update(extra)
    return {
        "type": "event_callback",
        "event_id": f"Ev{int(time.time())}",
        "event": event,
        "team_id": "T123456",
    }


def build_signed_request(
    secret: str,
    payload: Union[Dict[str, Any], str, bytes],
    timestamp: Optional[str] = None,
    extra_headers: Optional[Dict[str, str]] = None,
    content_type: str = "application/json"
) -> InboundRequest:
    """Build an InboundRequest carrying a valid signature for `payload`."""
    if isinstance(payload, dict):
        body = json.dumps(payload).encode('utf-8')
    elif isinstance(payload, str):
        body = payload.encode('utf-8')
    else:
        body = payload
    headers = signed_headers(secret, body, timestamp=timestamp, content_type=content_type)
    headers.update(extra_headers or {})
    return InboundRequest.build("POST", body, headers)


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it served."""

    def __init__(self, responder: Callable[[httpx.Request], Any]):
        self.requests: list[httpx.Request] = []

        async def handle(request: httpx.Request):
            self.requests.append(request)
            result = responder(request)
            if hasattr(result, "__await__"):
                result = await result
            return result

        super().__init__(handle)

    def json_bodies(self) -> list[Dict[str, Any]]:
        return [json.loads(request.content) for request in self.requests]


def json_responder(data: Any, status_code: int = 200) -> Callable[[httpx.Request], httpx.Response]:
    return lambda request: httpx.Response(status_code, json=data)


def slack_ok_responder() -> Callable[[httpx.Request], httpx.Response]:
    return json_responder({"ok": True, "ts": "1700000001.000200"})


class HandlerResult(NamedTuple):
    status: int
    headers: Dict[str, str]
    body: bytes

    def json(self) -> Any:
        return json.loads(self.body)


class MockSocket:
    """Socket stand-in for BaseHTTPRequestHandler; hang_up makes every write fail like a closed peer."""

    def __init__(self, raw_request: bytes, hang_up: bool = False):
        self.raw_request = raw_request
        self.hang_up = hang_up
        self.sent = bytearray()

    def makefile(self, *args, **kwargs):
        return BytesIO(self.raw_request)

    def sendall(self, data):
        if self.hang_up:
            raise BrokenPipeError(32, "Broken pipe")
        self.sent.extend(data)

    def close(self):
        pass


def raw_http_request(method: str, path: str, body: bytes, headers: Optional[Dict[str, str]]) -> bytes:
    headers = dict(headers or {})
    if body:
        headers.setdefault("Content-Length", str(len(body)))
    head = f"{method} {path} HTTP/1.1\r\n" + "".join(f"{k}: {v}\r\n" for k, v in headers.items()) + "\r\n"
    return head.encode('latin-1') + body


def run_handler(
    handler_cls: type,
    method: str = "POST",
    path: str = "/api/slack/events",
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None
) -> HandlerResult:
    """Feed one raw HTTP request through a BaseHTTPRequestHandler subclass and parse what it wrote."""
    sock = MockSocket(raw_http_request(method, path, body, headers))
    handler_cls(sock, ("127.0.0.1", 8000), None)

    raw_head, _, raw_body = bytes(sock.sent).partition(b"\r\n\r\n")
    lines = raw_head.decode('latin-1').split("\r\n")
    status = int(lines[0].split(" ")[1])
    response_headers = {}
    for line in lines[1:]:
        name, _, value = line.partition(":")
        response_headers[name.strip().lower()] = value.strip()
    return HandlerResult(status, response_headers, raw_body)


def run_handler_client_gone(
    handler_cls: type,
    method: str = "POST",
    path: str = "/api/slack/events",
    body: bytes = b"",
    headers: Optional[Dict[str, str]] = None
) -> None:
    """Feed one request through a handler whose client disconnected before the response."""
    handler_cls(MockSocket(raw_http_request(method, path, body, headers), hang_up=True), ("127.0.0.1", 8000), None)
