"""
Error kinds raised by the interception detector.

DecodeError is file-level and policy-gated (abort or skip), MissingData is
aircraft-level and always recoverable, ConcurrencyError is fatal.
"""

from __future__ import annotations


class InterceptError(Exception):
    """Base class for all detector errors."""


class DecodeError(InterceptError):
    """A source file could not be read, decompressed or parsed."""

    def __init__(self, source: str, message: str):
        super().__init__(f"{source}: {message}")
        self.source = source
        self.message = message


class MissingData(InterceptError):
    """A snapshot lacks a field needed to create or extend a track."""

    def __init__(self, hex_id: str, field: str):
        super().__init__(f"Aircraft {hex_id} is missing {field}")
        self.hex = hex_id
        self.field = field


class ConcurrencyError(InterceptError):
    """The parallel decode stage failed internally."""
