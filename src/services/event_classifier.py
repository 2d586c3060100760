"""Decide which Slack events are relayed to the answer service.

The platform re-delivers the bot's own replies as message events, so anything
bot-authored is dropped here to keep the relay from answering itself.
"""

import re
from typing import Any, Optional

from src.models.classification import EventClassification, EventDecision
from src.models.slack_event import InboundEvent
from src.utils.logging import get_structured_logger, mask_user_id, sanitize_message_text

logger = get_structured_logger(__name__)

MENTION_PATTERN = re.compile(r"<@[^>]+>")
WHITESPACE_PATTERN = re.compile(r"\s+")

BOT_SUBTYPE = "bot_message"
# Subtypes that still carry a fresh user-authored message
RELAYABLE_SUBTYPES = frozenset({"file_share", "thread_broadcast"})
DIRECT_MESSAGE_CHANNEL = "im"


def normalize_text(text: Optional[str]) -> str:
    """Strip `<@ID>` mention tokens and collapse whitespace."""
    if not text:
        return ""
    stripped = MENTION_PATTERN.sub(" ", text)
    return WHITESPACE_PATTERN.sub(" ", stripped).strip()


def is_bot_authored(event: InboundEvent) -> bool:
    return bool(event.bot_id) or event.subtype == BOT_SUBTYPE


def is_addressed_to_bot(event: InboundEvent) -> bool:
    """Mentions anywhere, or plain messages in a direct-message channel."""
    if event.type == "app_mention":
        return True
    return event.type == "message" and event.channel_type == DIRECT_MESSAGE_CHANNEL


def classify_event(event: Optional[InboundEvent]) -> EventClassification:
    """Apply the relay decision table to an event (or its absence)."""
    if event is None:
        return EventClassification(decision=EventDecision.NO_EVENT)
    
    if is_bot_authored(event):
        return EventClassification(decision=EventDecision.BOT_MESSAGE, event=event)
    
    if event.subtype and event.subtype not in RELAYABLE_SUBTYPES:
        return EventClassification(decision=EventDecision.IGNORED_SUBTYPE, event=event)
    
    if not is_addressed_to_bot(event):
        return EventClassification(decision=EventDecision.UNSUPPORTED_EVENT, event=event)
    
    conversation = event.conversation()
    if conversation is None:
        return EventClassification(decision=EventDecision.MISSING_CONVERSATION, event=event)
    
    query = normalize_text(event.text)
    if not query:
        return EventClassification(decision=EventDecision.EMPTY_TEXT, event=event)
    
    return EventClassification(
        decision=EventDecision.PROCEED,
        event=event,
        query=query,
        conversation=conversation,
    )


def classify_payload(payload: dict[str, Any]) -> EventClassification:
    """Classify the event carried by a decoded envelope."""
    result = classify_event(InboundEvent.from_payload(payload))
    
    event = result.event
    logger.info(
        "Slack event classified",
        decision=result.decision.value,
        event_type=event.type if event else None,
        channel_id=event.channel if event else None,
        user_id=mask_user_id(event.user) if event else None,
        subtype=event.subtype if event else None,
        query_preview=sanitize_message_text(result.query, max_length=100)
    )
    return result
