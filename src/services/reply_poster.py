"""Post replies back into the originating Slack thread."""

from typing import Optional

import httpx

from src.models.slack_event import ConversationRef, OutboundReply
from src.utils.config import RelayConfig
from src.utils.errors import ReplyPostError
from src.utils.logging import get_structured_logger, sanitize_message_text

logger = get_structured_logger(__name__)

POST_MESSAGE_METHOD = "chat.postMessage"


class ReplyPoster:
    """Fire-and-forget chat.postMessage client. Failures are logged, never raised."""

    def __init__(self, config: RelayConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.config.slack_api_base_url}/{POST_MESSAGE_METHOD}"

    async def _send(self, reply: OutboundReply) -> None:
        headers = {
            "Content-Type": "application/json; charset=utf-8",
            "Authorization": f"Bearer {self.config.secret('slack_bot_token')}",
        }
        timeout = httpx.Timeout(self.config.reply_timeout_seconds)
        async with httpx.AsyncClient(transport=self._transport, timeout=timeout) as client:
            response = await client.post(self.endpoint, json=reply.model_dump(), headers=headers)

        if not response.is_success:
            raise ReplyPostError(f"HTTP {response.status_code}")
        try:
            result = response.json()
        except ValueError as e:
            raise ReplyPostError("Non-JSON response from Slack") from e
        if not isinstance(result, dict) or not result.get("ok"):
            error = result.get("error") if isinstance(result, dict) else None
            raise ReplyPostError(error or "unknown_error")

    async def post(self, conversation: ConversationRef, text: str) -> bool:
        """Post `text` as a threaded reply. Returns True when Slack accepted it."""
        try:
            await self._send(OutboundReply.for_conversation(conversation, text))
        except (httpx.HTTPError, httpx.InvalidURL, ReplyPostError, ValueError) as e:
            logger.error(
                "Failed to post Slack reply",
                channel_id=conversation.channel,
                thread_ts=conversation.thread_ts,
                error_type=type(e).__name__,
                error=str(e)
            )
            return False

        logger.info(
            "Slack reply posted",
            channel_id=conversation.channel,
            thread_ts=conversation.thread_ts,
            reply_preview=sanitize_message_text(text, max_length=100)
        )
        return True
