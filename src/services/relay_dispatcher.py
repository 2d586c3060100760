"""Relay pipeline: verify, handshake or acknowledge, classify, then answer in a detached task."""

import asyncio
from typing import Optional

from src.models.classification import EventClassification
from src.models.relay_request import InboundRequest, RelayResponse, VerifiedRequest
from src.models.upstream import FailureKind, UpstreamResult
from src.services.event_classifier import classify_payload
from src.services.reply_poster import ReplyPoster
from src.services.slack_challenge import challenge_response
from src.services.slack_payload import parse_slack_payload
from src.services.slack_verifier import verify_slack_request
from src.services.upstream_invoker import UpstreamInvoker
from src.utils.config import RelayConfig
from src.utils.errors import MalformedPayloadError
from src.utils.logging import correlation_context, get_correlation_id, get_structured_logger

logger = get_structured_logger(__name__)

RETRY_HEADER = "x-slack-retry-num"


class RelayDispatcher:
    """
    Handles one inbound Slack request at a time and returns the HTTP response.

    The acknowledgment is returned before any downstream work starts. Relayable
    events are answered by a task spawned on the running loop; the task is
    tracked so the HTTP layer can `drain()` it after the response is flushed.
    """

    def __init__(
        self,
        config: RelayConfig,
        invoker: Optional[UpstreamInvoker] = None,
        poster: Optional[ReplyPoster] = None,
    ):
        self.config = config
        self.invoker = invoker or UpstreamInvoker(config)
        self.poster = poster or ReplyPoster(config)
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def verify(self, request: InboundRequest) -> VerifiedRequest:
        """Check the signature, then decode the body. The body is never parsed for unverified requests."""
        verified = verify_slack_request(self.config.secret("signing_secret"), request)
        if not verified:
            return VerifiedRequest(request=request, verified=False)
        return VerifiedRequest(request=request, verified=True, payload=parse_slack_payload(request))

    async def dispatch(self, request: InboundRequest) -> RelayResponse:
        """Produce the response for one request, spawning the answer task when the event is relayable."""
        with correlation_context() as correlation_id:
            if request.method != "POST":
                return RelayResponse.ok()

            if self.config.signing_secret is None:
                logger.error("Signing secret not configured, dropping request", missing=["SLACK_SIGNING_SECRET"])
                return RelayResponse.ok()

            try:
                verified = self.verify(request)
            except MalformedPayloadError as e:
                logger.warning("Malformed Slack payload, acknowledging and dropping", error=str(e))
                return RelayResponse.ok()

            if not verified.verified:
                return RelayResponse.forbidden()

            payload = verified.payload or {}
            handshake = challenge_response(payload)
            if handshake is not None:
                logger.info("URL verification challenge answered")
                return handshake

            if self.config.ignore_retries and request.header(RETRY_HEADER):
                logger.info(
                    "Slack retry delivery ignored",
                    retry_num=request.header(RETRY_HEADER),
                    retry_reason=request.header("x-slack-retry-reason")
                )
                return RelayResponse.ok(X_Slack_Ignored_Retry="true")

            try:
                classification = classify_payload(payload)
            except MalformedPayloadError as e:
                logger.warning("Malformed Slack event, acknowledging and dropping", error=str(e))
                return RelayResponse.ok()

            if not classification.should_relay:
                return RelayResponse.ok()

            missing = self.config.missing_fields()
            if missing:
                logger.error("Relay configuration incomplete, dropping event", missing=missing)
                return RelayResponse.ok()

            self.spawn(classification, correlation_id)
            return RelayResponse.ok()

    def spawn(self, classification: EventClassification, correlation_id: Optional[str] = None) -> asyncio.Task:
        """Start the answer task without awaiting it."""
        task = asyncio.create_task(self._answer(classification, correlation_id))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every answer task started on the running loop. Tasks left on another loop are dropped."""
        loop = asyncio.get_running_loop()
        while self._tasks:
            stale = [task for task in self._tasks if task.get_loop() is not loop]
            for task in stale:
                self._tasks.discard(task)
                if not task.get_loop().is_closed():
                    task.cancel()
            if stale:
                logger.warning("Dropped answer tasks bound to another event loop", dropped=len(stale))
            if self._tasks:
                await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def _answer(self, classification: EventClassification, correlation_id: Optional[str]) -> None:
        with correlation_context(correlation_id or get_correlation_id()):
            conversation = classification.conversation
            try:
                result = await self.invoker.invoke(classification.query)
            except asyncio.CancelledError:
                logger.warning("Answer task cancelled", channel_id=conversation.channel)
                raise
            except Exception as e:
                logger.error(
                    "Unhandled error calling upstream",
                    channel_id=conversation.channel,
                    error=str(e),
                    exc_info=True
                )
                result = UpstreamResult.failed(FailureKind.UNREACHABLE)

            try:
                await self.poster.post(conversation, self.reply_text(result))
            except Exception as e:
                logger.error(
                    "Unhandled error posting reply",
                    channel_id=conversation.channel,
                    thread_ts=conversation.thread_ts,
                    error=str(e),
                    exc_info=True
                )

    def reply_text(self, result: UpstreamResult) -> str:
        """The answer itself, or the fixed fallback for any failure."""
        if result.ok:
            return result.message
        logger.warning("Posting fallback reply", failure=result.failure.value)
        return self.config.fallback_text
