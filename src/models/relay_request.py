"""Inbound request and HTTP response models for the relay endpoint."""

import json
from typing import Any, Mapping, Optional
from pydantic import BaseModel, ConfigDict, Field


class InboundRequest(BaseModel):
    """Raw request exactly as received; immutable once built."""
    model_config = ConfigDict(frozen=True)

    method: str = Field("POST", description="HTTP method")
    body: bytes = Field(b"", description="Raw body bytes, unmodified (signature is computed over these)")
    headers: dict[str, str] = Field(default_factory=dict, description="Headers with lower-cased names")
    content_type: str = Field("", description="Declared content type without parameters")

    @classmethod
    def build(cls, method: str, body: bytes, headers: Mapping[str, str]) -> "InboundRequest":
        """Normalize header names and pull the content type out of the header map."""
        normalized = {str(k).lower(): str(v) for k, v in headers.items()}
        content_type = normalized.get("content-type", "").split(";")[0].strip().lower()
        return cls(
            method=method.upper(),
            body=body or b"",
            headers=normalized,
            content_type=content_type,
        )

    def header(self, name: str) -> Optional[str]:
        value = self.headers.get(name.lower())
        return value if value else None


class VerifiedRequest(BaseModel):
    """An inbound request together with its verification outcome and decoded payload."""
    model_config = ConfigDict(frozen=True)

    request: InboundRequest
    verified: bool
    payload: Optional[dict[str, Any]] = None


class RelayResponse(BaseModel):
    """HTTP response handed back to the platform."""
    model_config = ConfigDict(frozen=True)

    status: int = 200
    body: str = "OK"
    content_type: str = "text/plain"
    headers: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def ok(cls, **headers: str) -> "RelayResponse":
        """Plain acknowledgment the platform expects for every non-handshake request."""
        return cls(headers={k.replace("_", "-"): v for k, v in headers.items()})

    @classmethod
    def json_body(cls, data: Any, status: int = 200) -> "RelayResponse":
        return cls(status=status, body=json.dumps(data), content_type="application/json")

    @classmethod
    def forbidden(cls) -> "RelayResponse":
        return cls.json_body({"error": "invalid signature"}, status=403)
