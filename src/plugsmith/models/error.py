"""Structured error model for plugsmith."""

from typing import Any

from pydantic import BaseModel, Field


class StructuredError(BaseModel):
    """Structured error response format.

    All errors raised by plugsmith carry this schema so that hosts can
    tell which plugin failed, in which phase, and what to try next.
    """

    code: str = Field(
        ...,
        pattern=r"^[A-Z][A-Z0-9_]*$",
        description="Error code (e.g., BUILD_FAILED)",
        examples=[
            "MALFORMED_CALL",
            "UNSUPPORTED_SOURCE",
            "DUPLICATE_ALIAS",
            "BUILD_FAILED",
            "LOAD_FAILED",
            "REGISTRY_CLOSED",
        ],
    )

    message: str = Field(
        ...,
        description="Human-readable error message",
    )

    remediation: str = Field(
        ...,
        description="Suggested fix or next step",
    )

    retryable: bool = Field(
        ...,
        description="Whether retry may succeed",
    )

    alias: str | None = Field(
        default=None,
        description="Alias of the plugin the error belongs to",
    )

    phase: str | None = Field(
        default=None,
        description="Lifecycle phase (acquire, build, test, load, close)",
    )

    context: dict[str, Any] | None = Field(
        default=None,
        description="Additional context (key, path, diagnostic, etc.)",
    )

    model_config = {"extra": "forbid"}


class ErrorCode:
    """Standard error codes for plugsmith."""

    # Parse
    MALFORMED_CALL = "MALFORMED_CALL"
    UNSUPPORTED_SOURCE = "UNSUPPORTED_SOURCE"

    # Acquisition
    CLONE_FAILED = "CLONE_FAILED"
    RESOLUTION_FAILED = "RESOLUTION_FAILED"
    SYNC_FAILED = "SYNC_FAILED"
    DEPENDENCY_FAILED = "DEPENDENCY_FAILED"

    # Build / test / load
    BUILD_FAILED = "BUILD_FAILED"
    TEST_FAILED = "TEST_FAILED"
    LOAD_FAILED = "LOAD_FAILED"
    CLOSE_FAILED = "CLOSE_FAILED"
    PLUGIN_CALL_FAILED = "PLUGIN_CALL_FAILED"

    # Lookup / binding
    SYMBOL_NOT_FOUND = "SYMBOL_NOT_FOUND"
    NOT_WRITABLE = "NOT_WRITABLE"
    TYPE_MISMATCH = "TYPE_MISMATCH"

    # Lifecycle
    INVALID_DIR = "INVALID_DIR"
    DUPLICATE_ALIAS = "DUPLICATE_ALIAS"
    PLUGIN_NOT_LOADED = "PLUGIN_NOT_LOADED"
    REGISTRY_CLOSED = "REGISTRY_CLOSED"

    CONFIG_ERROR = "CONFIG_ERROR"
    MULTIPLE_ERRORS = "MULTIPLE_ERRORS"
    INTERNAL_ERROR = "INTERNAL_ERROR"
