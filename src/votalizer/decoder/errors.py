"""Exception hierarchy for notification decoding."""

from __future__ import annotations


class DecodeError(Exception):
    """
    Base exception for all notification decoding failures.

    A decode failure is always local to one notification. Callers skip the
    offending frame, count it, and continue with the next one.

    Attributes:
        message: Human-readable error description.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r})"


class MalformedPayloadError(DecodeError):
    """Raised when a frame is not valid JSON or has the wrong structure."""


class MissingFieldError(DecodeError):
    """
    Raised when a required field is absent.

    Attributes:
        field: Wire name of the missing field.
    """

    def __init__(self, field: str) -> None:
        self.field = field
        super().__init__(f"missing required field {field!r}")


class UnsupportedVersionError(DecodeError):
    """
    Raised when a notification declares a payload version we cannot read.

    Attributes:
        version: The declared version.
    """

    def __init__(self, version: object) -> None:
        self.version = version
        super().__init__(f"unsupported notification version {version!r}")
