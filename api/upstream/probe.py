"""Diagnostic endpoint: send a fixed question to the answer service and report what came back."""

from http.server import BaseHTTPRequestHandler
import asyncio
import json
import time
from typing import Optional

from src.services.upstream_invoker import UpstreamInvoker
from src.utils.config import RelayConfig, get_relay_config
from src.utils.logging import correlation_context, get_structured_logger
from src.utils.logging_config import LoggingConfig

LoggingConfig.setup_logging()
logger = get_structured_logger(__name__)

PROBE_QUERY = "what is pulse 360"


async def run_probe(config: RelayConfig, invoker: Optional[UpstreamInvoker] = None) -> tuple[int, dict]:
    """Invoke the answer service once and summarize the outcome. Never includes credentials."""
    if not config.upstream_url or config.upstream_auth_token is None:
        return 500, {"error": "upstream not configured"}
    
    invoker = invoker or UpstreamInvoker(config)
    with correlation_context():
        start = time.monotonic()
        result = await invoker.invoke(PROBE_QUERY)
        elapsed_ms = round((time.monotonic() - start) * 1000)
    
    logger.info(
        "Upstream probe finished",
        ok=result.ok,
        failure=result.failure.value if result.failure else None,
        elapsed_ms=elapsed_ms
    )
    return 200, {
        "ok": result.ok,
        "status": result.status_code,
        "elapsed_ms": elapsed_ms,
        "message": result.message,
        "failure": result.failure.value if result.failure else None,
    }


class handler(BaseHTTPRequestHandler):
    """Vercel serverless function handler for the upstream probe."""

    def do_GET(self):
        """Handle GET request."""
        try:
            status, data = asyncio.run(run_probe(get_relay_config()))
        except Exception as e:
            logger.error("Upstream probe failed", error=str(e), exc_info=True)
            status, data = 500, {"error": "probe failed"}
        
        body = json.dumps(data).encode('utf-8')
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(body)))
        self.end_headers()
        self.wfile.write(body)
