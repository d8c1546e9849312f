"""
Exception hierarchy for toolstream.

Three families of failure reach the caller:

- ``ConfigurationError``: invalid caller input, raised before any request
  is sent.
- ``ToolIterationLimitExceeded``: the tool-use loop never produced a final
  answer.
- ``LLMError`` and its subclasses: transport and protocol failures raised by
  the stream source or detected while folding stream events.

Tool execution failures never appear here: the dispatcher converts them into
error tool results so the model can react to them.
"""

from __future__ import annotations


class ToolstreamError(Exception):
    """Base exception for all toolstream errors."""


class ConfigurationError(ToolstreamError, ValueError):
    """Raised when the caller supplies invalid configuration or input."""


class ToolIterationLimitExceeded(ToolstreamError):
    """Raised when the tool-use loop exceeds its iteration cap."""


# ---------------------------------------------------------------------------
# Transport / protocol errors
# ---------------------------------------------------------------------------


class LLMError(ToolstreamError):
    """Base exception for errors reported by the model endpoint.

    Attributes:
        status_code: HTTP status code from the API, or ``None`` if unavailable.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class InternalServerError(LLMError):
    """The endpoint failed while processing the request."""


class ModelStreamError(LLMError):
    """The model failed mid-stream."""


class ThrottlingError(LLMError):
    """The endpoint rejected the request because of rate limits."""


class ValidationError(LLMError):
    """The endpoint rejected the request as invalid."""


class ServiceUnavailableError(LLMError):
    """The endpoint could not be reached or is temporarily unavailable."""


class StreamError(LLMError):
    """Generic error delivered on the event stream."""


class StreamProtocolError(StreamError):
    """The event stream violated the block structure (e.g. interleaved blocks)."""


# Error-event kinds delivered by a stream source, mapped to exception types.
STREAM_ERROR_TYPES: dict[str, type[LLMError]] = {
    "internal_server": InternalServerError,
    "model_stream": ModelStreamError,
    "throttling": ThrottlingError,
    "validation": ValidationError,
    "service_unavailable": ServiceUnavailableError,
}


def error_for_kind(kind: str, message: str) -> LLMError:
    """Return the typed error for a stream error event of *kind*."""
    return STREAM_ERROR_TYPES.get(kind, StreamError)(message)
