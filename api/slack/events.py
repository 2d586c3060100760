"""Slack events webhook endpoint for Vercel."""

from http.server import BaseHTTPRequestHandler
import asyncio
from typing import Optional

from src.models.relay_request import InboundRequest, RelayResponse
from src.services.relay_dispatcher import RelayDispatcher
from src.utils.config import get_relay_config
from src.utils.logging import get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)

_dispatcher: Optional[RelayDispatcher] = None


def get_dispatcher() -> RelayDispatcher:
    """Get or create the relay dispatcher for this process."""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = RelayDispatcher(get_relay_config())
    return _dispatcher


def write_response(request_handler: BaseHTTPRequestHandler, response: RelayResponse) -> None:
    """Write and flush a RelayResponse so the client has it before any post-ack work runs."""
    body = response.body.encode('utf-8')
    request_handler.send_response(response.status)
    request_handler.send_header('Content-Type', response.content_type)
    request_handler.send_header('Content-Length', str(len(body)))
    for name, value in response.headers.items():
        request_handler.send_header(name, value)
    request_handler.end_headers()
    request_handler.wfile.write(body)
    request_handler.wfile.flush()


def read_body(request_handler: BaseHTTPRequestHandler) -> Optional[bytes]:
    """Read the raw request body, or None when Content-Length is not a usable number."""
    raw_length = request_handler.headers.get('Content-Length') or "0"
    try:
        content_length = int(raw_length)
    except ValueError:
        content_length = -1
    if content_length < 0:
        logger.warning("Invalid Content-Length header, acknowledging and dropping", content_length=raw_length[:32])
        return None
    return request_handler.rfile.read(content_length) if content_length > 0 else b""


class handler(BaseHTTPRequestHandler):
    """Vercel serverless function handler for Slack events."""

    def do_POST(self):
        """Acknowledge Slack, then finish any answer task started by the request."""
        responded = False
        dispatcher: Optional[RelayDispatcher] = None
        loop = asyncio.new_event_loop()
        try:
            raw_body = read_body(self)
            if raw_body is None:
                responded = True
                write_response(self, RelayResponse.ok())
                return
            request = InboundRequest.build("POST", raw_body, dict(self.headers.items()))
            
            dispatcher = get_dispatcher()
            response = loop.run_until_complete(dispatcher.dispatch(request))
            responded = True
            write_response(self, response)
        except OSError as e:
            # Slack stops listening after ~3s; the answer task still runs below
            logger.warning("Client disconnected before the response was written", error=str(e))
        except Exception as e:
            logger.error("Error processing Slack event", error=str(e), exc_info=True)
            if not responded:
                write_response(
                    self,
                    RelayResponse.json_body({"error": "internal server error"}, status=500)
                )
        finally:
            try:
                if dispatcher is not None and dispatcher.pending:
                    logger.info("Acknowledged, continuing with answer task", pending_tasks=dispatcher.pending)
                    loop.run_until_complete(dispatcher.drain())
            finally:
                loop.close()

    def _acknowledge(self):
        write_response(self, RelayResponse.ok())

    # Health checks and stray methods always get a plain 200
    do_GET = _acknowledge
    do_HEAD = _acknowledge
    do_PUT = _acknowledge
    do_PATCH = _acknowledge
    do_DELETE = _acknowledge
