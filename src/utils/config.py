"""Relay configuration, loaded once at process start and passed to every component."""

import math
import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from src.utils.logging import get_structured_logger

logger = get_structured_logger(__name__)

DEFAULT_FALLBACK_TEXT = "⚠️ Sorry, I couldn't reach the answer service right now. Please try again shortly."
DEFAULT_REPLY_FIELDS = ("message", "reply", "response", "body", "messages")

AuthPlacement = Literal["body", "header", "both"]

# field name -> environment variable
REQUIRED_SETTINGS = {
    "signing_secret": "SLACK_SIGNING_SECRET",
    "slack_bot_token": "SLACK_BOT_TOKEN",
    "upstream_url": "UPSTREAM_API_URL",
    "upstream_auth_token": "UPSTREAM_AUTH_TOKEN",
}


class RelayConfig(BaseModel):
    """Immutable relay settings. Secrets are held as SecretStr so they never render in logs or reprs."""
    model_config = ConfigDict(frozen=True)

    signing_secret: Optional[SecretStr] = None
    slack_bot_token: Optional[SecretStr] = None
    upstream_url: Optional[str] = None
    upstream_auth_token: Optional[SecretStr] = None
    upstream_timeout_seconds: float = Field(25.0, gt=0)

    product: str = "voice_assure"
    request_source: str = "ui"
    query_field: str = "query"
    auth_placement: AuthPlacement = "body"
    reply_fields: tuple[str, ...] = DEFAULT_REPLY_FIELDS

    slack_api_base_url: str = "https://slack.com/api"
    reply_timeout_seconds: float = Field(10.0, gt=0)
    fallback_text: str = Field(DEFAULT_FALLBACK_TEXT, min_length=1)
    ignore_retries: bool = True

    api_token: Optional[SecretStr] = None

    def missing_fields(self) -> list[str]:
        """Environment names of required settings that are unset."""
        return [env for field, env in REQUIRED_SETTINGS.items() if getattr(self, field) is None]

    def secret(self, field: str) -> str:
        """Reveal a secret setting, or return an empty string when it is unset."""
        value = getattr(self, field)
        return value.get_secret_value() if value is not None else ""


def _text(environ: Mapping[str, str], key: str) -> Optional[str]:
    value = environ.get(key, "").strip()
    return value or None


def _number(environ: Mapping[str, str], key: str, default: float) -> float:
    raw = _text(environ, key)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        value = -1
    if not math.isfinite(value) or value <= 0:
        logger.warning("Invalid numeric setting, using default", setting=key, default=default)
        return default
    return value


def _flag(environ: Mapping[str, str], key: str, default: bool) -> bool:
    raw = _text(environ, key)
    if raw is None:
        return default
    return raw.lower() in ("1", "true", "yes", "on")


def _fields(environ: Mapping[str, str], key: str) -> tuple[str, ...]:
    raw = _text(environ, key)
    if raw is None:
        return DEFAULT_REPLY_FIELDS
    fields = tuple(part.strip() for part in raw.split(",") if part.strip())
    return fields or DEFAULT_REPLY_FIELDS


def _secret(environ: Mapping[str, str], key: str) -> Optional[SecretStr]:
    value = _text(environ, key)
    return SecretStr(value) if value else None


def load_relay_config(environ: Optional[Mapping[str, str]] = None) -> RelayConfig:
    """Build the relay configuration from environment variables.

    Never raises for absent values; callers check ``missing_fields()`` and skip
    processing instead of crashing.
    """
    if environ is None:
        environ = os.environ

    auth_placement = (_text(environ, "UPSTREAM_AUTH_PLACEMENT") or "body").lower()
    if auth_placement not in ("body", "header", "both"):
        logger.warning(
            "Invalid UPSTREAM_AUTH_PLACEMENT, using body",
            auth_placement=auth_placement
        )
        auth_placement = "body"

    config = RelayConfig(
        signing_secret=_secret(environ, "SLACK_SIGNING_SECRET"),
        slack_bot_token=_secret(environ, "SLACK_BOT_TOKEN"),
        upstream_url=_text(environ, "UPSTREAM_API_URL"),
        upstream_auth_token=_secret(environ, "UPSTREAM_AUTH_TOKEN"),
        upstream_timeout_seconds=_number(environ, "UPSTREAM_TIMEOUT_SECONDS", 25.0),
        product=_text(environ, "UPSTREAM_PRODUCT") or "voice_assure",
        request_source=_text(environ, "UPSTREAM_REQUEST_SOURCE") or "ui",
        query_field=_text(environ, "UPSTREAM_QUERY_FIELD") or "query",
        auth_placement=auth_placement,
        reply_fields=_fields(environ, "UPSTREAM_REPLY_FIELDS"),
        slack_api_base_url=(_text(environ, "SLACK_API_BASE_URL") or "https://slack.com/api").rstrip("/"),
        reply_timeout_seconds=_number(environ, "SLACK_POST_TIMEOUT_SECONDS", 10.0),
        fallback_text=_text(environ, "RELAY_FALLBACK_TEXT") or DEFAULT_FALLBACK_TEXT,
        ignore_retries=_flag(environ, "SLACK_IGNORE_RETRIES", True),
        api_token=_secret(environ, "RELAY_API_TOKEN"),
    )

    missing = config.missing_fields()
    if missing:
        logger.warning("Relay configuration incomplete", missing=missing)
    else:
        logger.info(
            "Relay configuration loaded",
            upstream_timeout_seconds=config.upstream_timeout_seconds,
            auth_placement=config.auth_placement,
            reply_fields=list(config.reply_fields)
        )
    return config


_relay_config: Optional[RelayConfig] = None


def get_relay_config() -> RelayConfig:
    """Get or load the process-wide configuration."""
    global _relay_config
    if _relay_config is None:
        _relay_config = load_relay_config()
    return _relay_config
