"""Exception hierarchy for the Wattpad client."""

from __future__ import annotations

from typing import Any, Optional


class WattpadError(Exception):
    """Base exception for every error raised by this package."""

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.details:
            detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
            return f"{self.message} ({detail_str})"
        return self.message


# ---- Input / validation errors ----

class InvalidConfig(WattpadError, ValueError):
    """A configuration value is out of range."""


class InvalidIdentifier(WattpadError, ValueError):
    """A story, chapter or user identifier is empty or badly shaped."""

    def __init__(self, kind: str, value: object):
        super().__init__(f"Invalid {kind} identifier: {value!r}", {"kind": kind})
        self.kind = kind
        self.value = value


class InvalidEndpoint(WattpadError, ValueError):
    """An endpoint URL does not belong to the configured API host."""

    def __init__(self, endpoint: str, expected_host: str):
        super().__init__(
            f"Refusing to send to {endpoint}",
            {"expected_host": expected_host},
        )
        self.endpoint = endpoint
        self.expected_host = expected_host


class InvalidOrdering(WattpadError, ValueError):
    """Chapter order indices are not strictly increasing."""

    def __init__(self, story_id: str, indices: tuple[int, ...]):
        super().__init__(
            f"Story {story_id} has non-increasing chapter order",
            {"indices": list(indices)},
        )
        self.story_id = story_id
        self.indices = indices


# ---- Transport errors ----

class TransportError(WattpadError):
    """A request could not be completed."""

    retryable = False

    def __init__(self, message: str, endpoint: str, details: Optional[dict[str, Any]] = None):
        merged = {"endpoint": endpoint}
        merged.update(details or {})
        super().__init__(message, merged)
        self.endpoint = endpoint


class ConnectionFailed(TransportError):
    """The upstream host could not be reached."""

    retryable = True

    def __init__(self, endpoint: str, reason: str = ""):
        super().__init__(f"Connection failed{': ' + reason if reason else ''}", endpoint)
        self.reason = reason


class Timeout(TransportError):
    """The request exceeded its per-call timeout."""

    retryable = True

    def __init__(self, endpoint: str, timeout: float):
        super().__init__(f"Request timed out after {timeout:g}s", endpoint)
        self.timeout = timeout


class HttpStatus(TransportError):
    """The upstream host answered with a non-2xx status."""

    def __init__(
        self,
        endpoint: str,
        status_code: int,
        api_code: Optional[int] = None,
        api_message: str = "",
    ):
        details: dict[str, Any] = {}
        if api_code is not None:
            details["api_code"] = api_code
        if api_message:
            details["api_message"] = api_message
        super().__init__(f"HttpStatus({status_code})", endpoint, details)
        self.status_code = status_code
        self.api_code = api_code
        self.api_message = api_message

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code == 429 or self.status_code >= 500


class AuthRejected(TransportError):
    """The upstream host refused our credentials (or their absence)."""

    def __init__(self, endpoint: str, status_code: int, api_code: Optional[int] = None):
        details: dict[str, Any] = {"status_code": status_code}
        if api_code is not None:
            details["api_code"] = api_code
        super().__init__("Authentication rejected", endpoint, details)
        self.status_code = status_code
        self.api_code = api_code


# ---- Decode errors ----

class DecodeError(WattpadError):
    """A response body could not be turned into a model."""


class EmptyPayload(DecodeError):
    """The response body was zero-length."""

    def __init__(self, shape: str):
        super().__init__(f"Empty {shape} payload", {"shape": shape})
        self.shape = shape


class MalformedPayload(DecodeError):
    """A required field is absent or has an unusable type."""

    def __init__(self, shape: str, field: str, reason: str = "missing or untyped"):
        super().__init__(
            f"Malformed {shape} payload: field {field!r} {reason}",
            {"shape": shape, "field": field},
        )
        self.shape = shape
        self.field = field


# ---- Assembler errors ----

class AssemblerError(WattpadError):
    """Story content could not be assembled at all."""

    def __init__(self, message: str, story_id: str):
        super().__init__(message, {"story_id": story_id})
        self.story_id = story_id


class NoChaptersFound(AssemblerError):
    def __init__(self, story_id: str):
        super().__init__(f"Story {story_id} has no chapters", story_id)


class StoryNotFound(AssemblerError):
    def __init__(self, story_id: str):
        super().__init__(f"Story {story_id} not found", story_id)


class ChapterFetchError(WattpadError):
    """A single chapter failed; carried in ``StoryContent.statuses``, never raised by the assembler."""

    def __init__(self, chapter_id: str, order_index: int, endpoint: str, cause: Exception):
        super().__init__(
            f"Chapter {chapter_id} failed: {cause.__class__.__name__}",
            {"order_index": order_index, "endpoint": endpoint, "cause": str(cause)},
        )
        self.chapter_id = chapter_id
        self.order_index = order_index
        self.endpoint = endpoint
        self.cause = cause
