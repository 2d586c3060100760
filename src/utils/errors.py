"""Error handling utilities."""


class RelayError(Exception):
    """Base exception for the answer relay."""
    pass


class MalformedPayloadError(RelayError):
    """Request body could not be decoded into a Slack payload."""
    pass


class ConfigMissingError(RelayError):
    """Required configuration values are absent."""

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"Missing required configuration: {', '.join(self.missing)}")


class ReplyPostError(RelayError):
    """Posting the reply back to Slack failed."""
    pass
