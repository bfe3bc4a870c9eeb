"""Error kinds raised across the meeting pipeline."""

from __future__ import annotations

from typing import Optional


class RecapError(Exception):
    """Base class for every error surfaced to the user."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(RecapError):
    """A credential or setting is missing. Never masked by a fallback."""


class InputError(RecapError):
    """Input rejected before any network call."""

    def __init__(self, message: str, reason: str = "invalid") -> None:
        super().__init__(message)
        self.reason = reason


class ServiceError(RecapError):
    """The transcription or language-model service failed."""

    def __init__(
        self,
        message: str,
        quota: bool = False,
        status: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.quota = quota
        self.status = status


class ValidationError(RecapError):
    """The service answered but the payload has the wrong shape."""

    def __init__(self, message: str, reason: str = "shape") -> None:
        super().__init__(message)
        self.reason = reason


QUOTA_HELP = (
    "The language-model service reported that its usage quota or rate limit "
    "was exceeded. Wait a few minutes and retry, or check the account's "
    "billing limits."
)


def describe_error(exc: RecapError) -> str:
    if isinstance(exc, ServiceError) and exc.quota:
        return f"{exc.message}\n{QUOTA_HELP}"
    return exc.message
