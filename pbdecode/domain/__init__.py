"""
Domain package for pbdecode.

Exports the record and decoded-value models plus the error taxonomy.
Keep this package focused on data definitions; no I/O lives here.
"""

from pbdecode.domain.errors import (
    ConfigError,
    DecodeError,
    MarshalError,
    PipelineError,
    PipelineIOError,
    RecordError,
    SchemaError,
    WriteError,
)
from pbdecode.domain.models import (
    DecodedValue,
    ListValue,
    MessageValue,
    Record,
    ScalarValue,
    to_native,
)

__all__ = [
    # Models
    "DecodedValue",
    "ListValue",
    "MessageValue",
    "Record",
    "ScalarValue",
    "to_native",
    # Errors
    "ConfigError",
    "DecodeError",
    "MarshalError",
    "PipelineError",
    "PipelineIOError",
    "RecordError",
    "SchemaError",
    "WriteError",
]
