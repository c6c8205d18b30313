from __future__ import annotations

from enum import StrEnum


class Phase(StrEnum):
    """Pipeline step at which a request stopped."""

    FETCH = "fetch"
    BUILD = "build"
    EXTRACT = "extract"
    TRANSFORM = "transform"
    PROCESS = "process"


class ErrorCode(StrEnum):
    FETCH_FAILED = "FETCH_FAILED"
    BUILD_FAILED = "BUILD_FAILED"
    EXTRACT_FAILED = "EXTRACT_FAILED"
    TRANSFORM_FAILED = "TRANSFORM_FAILED"
    PROCESS_FAILED = "PROCESS_FAILED"
    INVALID_INPUT = "INVALID_INPUT"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


class SectionFetchError(Exception):
    """Raised for all expected failure conditions.

    Collaborator adapters raise the phase subclasses below; the pipeline turns
    them into phase-tagged results. Tool handlers raise this class directly and
    server.py serialises it into the MCP tool error result, so the agent always
    receives a tagged text message instead of a traceback.
    """

    code: ErrorCode = ErrorCode.UNEXPECTED_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: ErrorCode | None = None,
        suggestion: str = "",
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message
        self.suggestion = suggestion
        self.recoverable = recoverable

    def render(self) -> str:
        """Return the tagged text shown to the agent."""
        return f"<error>{self.message}</error>"

    def to_dict(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "message": self.message,
                "suggestion": self.suggestion,
                "recoverable": self.recoverable,
            }
        }


class FetchFailure(SectionFetchError):
    """Network or transport failure, including non-2xx responses and timeouts."""

    code = ErrorCode.FETCH_FAILED


class ParseFailure(SectionFetchError):
    """The HTML could not be turned into a document."""

    code = ErrorCode.BUILD_FAILED


class NoContentFailure(SectionFetchError):
    """Article or boundary extraction produced nothing."""

    code = ErrorCode.EXTRACT_FAILED


class TransformFailure(SectionFetchError):
    """Serialising the extracted HTML to the output format failed."""

    code = ErrorCode.TRANSFORM_FAILED


PHASE_ERROR_CODES: dict[Phase, ErrorCode] = {
    Phase.FETCH: ErrorCode.FETCH_FAILED,
    Phase.BUILD: ErrorCode.BUILD_FAILED,
    Phase.EXTRACT: ErrorCode.EXTRACT_FAILED,
    Phase.TRANSFORM: ErrorCode.TRANSFORM_FAILED,
    Phase.PROCESS: ErrorCode.PROCESS_FAILED,
}
