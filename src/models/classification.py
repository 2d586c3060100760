"""Event classification models."""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field

from src.models.slack_event import ConversationRef, InboundEvent


class EventDecision(str, Enum):
    """Outcome of classifying an inbound event."""
    PROCEED = "PROCEED"
    NO_EVENT = "NO_EVENT"
    BOT_MESSAGE = "BOT_MESSAGE"
    IGNORED_SUBTYPE = "IGNORED_SUBTYPE"
    UNSUPPORTED_EVENT = "UNSUPPORTED_EVENT"
    EMPTY_TEXT = "EMPTY_TEXT"
    MISSING_CONVERSATION = "MISSING_CONVERSATION"


class EventClassification(BaseModel):
    """Classifier verdict; query and conversation are only set when the decision is PROCEED."""
    model_config = ConfigDict(frozen=True)

    decision: EventDecision = Field(..., description="Whether to relay the event and why not")
    event: Optional[InboundEvent] = None
    query: Optional[str] = Field(None, description="Event text with mention markup removed")
    conversation: Optional[ConversationRef] = None

    def model_post_init(self, __context: object) -> None:
        """Validate that PROCEED verdicts carry a query and a reply target."""
        if self.decision == EventDecision.PROCEED:
            if not self.query or self.conversation is None:
                raise ValueError("PROCEED requires query and conversation")

    @property
    def should_relay(self) -> bool:
        return self.decision == EventDecision.PROCEED
