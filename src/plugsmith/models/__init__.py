"""Pydantic models for plugsmith."""

from plugsmith.models.error import ErrorCode, StructuredError

__all__ = [
    "ErrorCode",
    "StructuredError",
]
