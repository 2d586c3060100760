"""Slack event models."""

from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from src.utils.errors import MalformedPayloadError


class ConversationRef(BaseModel):
    """Where a reply must be posted."""
    model_config = ConfigDict(frozen=True)

    channel: str = Field(..., description="Slack channel ID")
    thread_ts: str = Field(..., description="Timestamp of the thread parent message")


class InboundEvent(BaseModel):
    """The `event` object of a Slack event_callback envelope."""
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: str = Field(..., description="Event type, e.g. app_mention or message")
    channel: Optional[str] = Field(None, description="Slack channel ID")
    ts: Optional[str] = Field(None, description="Message timestamp (platform message id)")
    text: str = Field("", description="Message text, mention markup included")
    user: Optional[str] = Field(None, description="Authoring Slack user ID")
    bot_id: Optional[str] = Field(None, description="Set when a bot authored the message")
    subtype: Optional[str] = Field(None, description="Message subtype")
    channel_type: Optional[str] = Field(None, description="channel, group, im or mpim")
    thread_ts: Optional[str] = Field(None, description="Parent timestamp when posted inside a thread")
    files: Optional[list[dict[str, Any]]] = Field(None, description="Attached file objects")

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> Optional["InboundEvent"]:
        """Extract the event from an envelope. Returns None when the envelope carries no event."""
        event = payload.get("event") if isinstance(payload, dict) else None
        if not event:
            return None
        if not isinstance(event, dict):
            raise MalformedPayloadError("event field is not an object")

        data = dict(event)
        if data.get("text") is None:
            data["text"] = ""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise MalformedPayloadError(f"Invalid event shape: {e.error_count()} error(s)") from e

    def conversation(self) -> Optional[ConversationRef]:
        """Reply target: the enclosing thread if any, otherwise the triggering message itself."""
        parent = self.thread_ts or self.ts
        if not self.channel or not parent:
            return None
        return ConversationRef(channel=self.channel, thread_ts=parent)


class OutboundReply(BaseModel):
    """Body of a chat.postMessage call."""
    channel: str
    text: str = Field(..., min_length=1)
    thread_ts: str

    @classmethod
    def for_conversation(cls, conversation: ConversationRef, text: str) -> "OutboundReply":
        return cls(channel=conversation.channel, text=text, thread_ts=conversation.thread_ts)
