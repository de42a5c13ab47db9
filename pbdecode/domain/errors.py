"""
Error taxonomy for pbdecode.

Every failure raised by the registry, decoder, record source, sinks or
pipeline derives from PipelineError. Nothing in the package retries: callers
either surface the error (CLI) or record it as the run's first failure
(orchestrator).

Stages:
    config  - invalid or missing options, detected before any I/O
    schema  - unreadable descriptor set, unknown or unbuildable message type
    io      - source/destination open or read failure
    record  - malformed tabular input row
    decode  - bad hex text or invalid wire bytes for the target type
    marshal - record could not be serialized
    write   - serialized record could not be written
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PipelineError(Exception):
    """
    Base exception for all pbdecode errors.

    Attributes:
        message: Human-readable error description
        cause: Original exception if wrapping
        context: Additional context dict for debugging
    """

    stage: str = "pipeline"

    def __init__(
        self,
        message: str,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.cause = cause
        self.context = context or {}
        super().__init__(message)

    def __str__(self) -> str:
        parts = [self.message]
        if self.cause:
            parts.append(f"Caused by: {self.cause}")
        return " | ".join(parts)


class ConfigError(PipelineError):
    """Invalid or missing configuration."""

    stage = "config"


class SchemaError(PipelineError):
    """Descriptor set could not be loaded or a message type could not be resolved."""

    stage = "schema"


class PipelineIOError(PipelineError):
    """Source or destination file could not be opened or read."""

    stage = "io"


class RecordError(PipelineError):
    """A tabular row could not be turned into a Record."""

    stage = "record"

    def __init__(
        self,
        message: str,
        line: int,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, cause, {"line": line, **(context or {})})
        self.line = line


class DecodeError(PipelineError):
    """Payload text or bytes are not a valid encoding for the target type."""

    stage = "decode"


class MarshalError(PipelineError):
    """Record could not be serialized."""

    stage = "marshal"


class WriteError(PipelineError):
    """Serialized record could not be written to the destination."""

    stage = "write"


__all__ = [
    "PipelineError",
    "ConfigError",
    "SchemaError",
    "PipelineIOError",
    "RecordError",
    "DecodeError",
    "MarshalError",
    "WriteError",
]
