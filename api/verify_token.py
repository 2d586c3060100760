"""Access-token check used by the chat widget before it talks to the relay."""

from http.server import BaseHTTPRequestHandler
import hmac
import json

from src.utils.config import get_relay_config
from src.utils.logging import get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)


def check_token(expected: str, body: bytes) -> tuple[int, dict]:
    """Return (status, response body) for a token check request."""
    if not expected:
        logger.error("RELAY_API_TOKEN not configured")
        return 500, {"valid": False, "error": "Server not configured"}
    
    try:
        data = json.loads(body.decode('utf-8')) if body else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        return 400, {"valid": False, "error": "Invalid JSON"}
    
    token = data.get("token") if isinstance(data, dict) else None
    if isinstance(token, str) and token and hmac.compare_digest(token.encode('utf-8'), expected.encode('utf-8')):
        return 200, {"valid": True}
    
    logger.warning("Invalid API token presented", has_token=bool(token))
    return 401, {"valid": False, "error": "Invalid token"}


class handler(BaseHTTPRequestHandler):
    """Vercel serverless function handler for token verification."""

    def _send_json(self, status: int, data: dict, **headers: str):
        body = json.dumps(data).encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(body)))
        for name, value in headers.items():
            self.send_header(name, value)
        self.end_headers()
        self.wfile.write(body)

    def do_POST(self):
        """Handle POST request."""
        try:
            content_length = int(self.headers.get('Content-Length') or 0)
        except ValueError:
            self._send_json(400, {"valid": False, "error": "Invalid Content-Length"})
            return
        body = self.rfile.read(content_length) if content_length > 0 else b""
        status, data = check_token(get_relay_config().secret("api_token"), body)
        self._send_json(status, data)

    def _method_not_allowed(self):
        """Only POST is allowed."""
        self._send_json(405, {"error": "Method Not Allowed"}, Allow="POST")

    do_GET = _method_not_allowed
    do_PUT = _method_not_allowed
    do_PATCH = _method_not_allowed
    do_DELETE = _method_not_allowed
