"""Models for the downstream answer service call."""

from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, Field, SecretStr


class FailureKind(str, Enum):
    """Reasons a downstream call produced no displayable answer."""
    TIMEOUT = "timeout"
    UNREACHABLE = "unreachable"
    BAD_STATUS = "bad_status"
    NO_REPLY = "no_reply"


class SessionAttributes(BaseModel):
    """Session attributes the answer service expects alongside every query."""
    auth_token: Optional[SecretStr] = Field(None, description="Downstream credential, never logged")
    product: str = Field("voice_assure", description="Product the question is about")
    request_source: str = Field("ui", description="Origin tag reported to the answer service")


class UpstreamQuery(BaseModel):
    """Canonical request body for the answer service."""
    model_config = ConfigDict(populate_by_name=True)

    query: str = Field(..., min_length=1, description="Normalized user question")
    session_attributes: SessionAttributes = Field(..., alias="sessionAttributes")

    def to_wire(self, query_field: str = "query", include_auth_token: bool = True) -> dict[str, Any]:
        """Serialize for the HTTP call. This is the only place the auth token is revealed."""
        attributes: dict[str, Any] = {}
        if include_auth_token and self.session_attributes.auth_token is not None:
            attributes["auth_token"] = self.session_attributes.auth_token.get_secret_value()
        attributes["product"] = self.session_attributes.product
        attributes["request_source"] = self.session_attributes.request_source
        return {query_field: self.query, "sessionAttributes": attributes}


class UpstreamResult(BaseModel):
    """Either a displayable message or a failure kind, never both."""
    model_config = ConfigDict(frozen=True)

    message: Optional[str] = None
    failure: Optional[FailureKind] = None
    status_code: Optional[int] = Field(None, description="HTTP status when a response was received")

    def model_post_init(self, __context: Any) -> None:
        """Validate that exactly one of message or failure is set."""
        if (self.message is None) == (self.failure is None):
            raise ValueError("Exactly one of message or failure must be set")
        if self.message is not None and not self.message.strip():
            raise ValueError("message must not be blank")

    @classmethod
    def success(cls, message: str, status_code: Optional[int] = None) -> "UpstreamResult":
        return cls(message=message, status_code=status_code)

    @classmethod
    def failed(cls, kind: FailureKind, status_code: Optional[int] = None) -> "UpstreamResult":
        return cls(failure=kind, status_code=status_code)

    @property
    def ok(self) -> bool:
        return self.message is not None
