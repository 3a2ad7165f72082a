"""
podcoverage Error Hierarchy

Unified exception hierarchy for the coverage endpoints and the peer
aggregation protocol. All custom exceptions inherit from PodCoverageError so
handlers can map every failure to a single 500 response.

Usage:
    from podcoverage.errors import PeerTimeoutError, PodCoverageError

    try:
        collector.collect(scratch_dir, url)
    except PeerTimeoutError as e:
        logger.error("not every replica answered: %s", e)
"""

from typing import Any

__all__ = [
    "ConfigurationError",
    "CoverageToolError",
    "CoverageUnavailableError",
    "LocalIOError",
    "NoCoverageDataError",
    "PeerCommunicationError",
    "PeerError",
    "PeerProtocolError",
    "PeerTimeoutError",
    # Base error
    "PodCoverageError",
    "ReportError",
    "ReportParseError",
]


class PodCoverageError(Exception):
    """Base exception for all podcoverage errors.

    Attributes:
        code: Machine-readable error code for categorization
        message: Human-readable error description
        context: Additional context for debugging
    """
    code: str = "PODCOVERAGE_ERROR"

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            ctx = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"[{self.code}] {self.message} ({ctx})"
        return f"[{self.code}] {self.message}"


class ConfigurationError(PodCoverageError):
    """Invalid configuration value (replica count, timeouts, config file)."""
    code: str = "CONFIGURATION_ERROR"


# =============================================================================
# Local Errors
# =============================================================================


class LocalIOError(PodCoverageError):
    """Scratch directory or artifact file could not be created, read or written."""
    code: str = "LOCAL_IO_ERROR"

    def __init__(
        self,
        message: str,
        path: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if path:
            self.context["path"] = path


class CoverageUnavailableError(PodCoverageError):
    """The process is not measured by coverage.py.

    Raised when no coverage.Coverage instance is active, so there are no
    counters to dump or clear.
    """
    code: str = "COVERAGE_UNAVAILABLE"


class CoverageToolError(PodCoverageError):
    """External coverage tool invocation failed.

    Attributes:
        output: Combined stdout/stderr captured from the tool
    """
    code: str = "COVERAGE_TOOL_ERROR"

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        output: str = "",
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        self.output = output
        if command:
            self.context["command"] = " ".join(command)
        if returncode is not None:
            self.context["returncode"] = returncode


# =============================================================================
# Peer Errors
# =============================================================================


class PeerError(PodCoverageError):
    """Base class for peer collection and broadcast errors."""
    code: str = "PEER_ERROR"


class PeerCommunicationError(PeerError):
    """Request to the entry URL could not be built or performed.

    Aborts the whole collection/broadcast; the offending peer is not skipped.
    """
    code: str = "PEER_COMMUNICATION_ERROR"

    def __init__(
        self,
        message: str,
        url: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if url:
            self.context["url"] = url


class PeerProtocolError(PeerCommunicationError):
    """A responder did not identify itself, so it cannot be deduplicated."""
    code: str = "PEER_PROTOCOL_ERROR"


class PeerTimeoutError(PeerError):
    """Overall time budget elapsed before every expected replica answered."""
    code: str = "PEER_TIMEOUT"

    def __init__(
        self,
        message: str,
        seen: int | None = None,
        expected: int | None = None,
        budget_sec: float | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if seen is not None:
            self.context["seen"] = seen
        if expected is not None:
            self.context["expected"] = expected
        if budget_sec is not None:
            self.context["budget_sec"] = budget_sec


# =============================================================================
# Report Errors
# =============================================================================


class ReportError(PodCoverageError):
    """Base class for percent report errors."""
    code: str = "REPORT_ERROR"


class ReportParseError(ReportError):
    """A percentage token in the report is not a number."""
    code: str = "REPORT_PARSE_ERROR"

    def __init__(
        self,
        message: str,
        line: str | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message, context=context)
        if line is not None:
            self.context["line"] = line


class NoCoverageDataError(ReportError):
    """The report did not name a single contributing package."""
    code: str = "NO_COVERAGE_DATA"
