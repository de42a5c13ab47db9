"""
pbdecode - bulk decoder for protobuf payloads with a runtime-supplied schema.

Reads comma-delimited rows where one column holds a hex-encoded protobuf
message, decodes that column against a message type taken from a compiled
descriptor set (no generated code), and writes each enriched row as one line
of JSON. Decoding is fanned out over a fixed pool of worker threads fed by a
bounded queue:

- Descriptor registry (descriptor set -> message types)
- Byte normalizer and dynamic decoder (hex -> bytes -> tagged values)
- Record source (delimited text -> Records)
- Pipeline coordinator (producer, bounded queue, workers)
- Output sinks (marshaler + writer)
"""

from __future__ import annotations

__version__ = "0.1.0"
__license__ = "MIT"

# Public API exports
from pbdecode.config import Settings, get_settings
from pbdecode.decoder import decode, decode_payload, flatten, normalize
from pbdecode.domain import (
    ConfigError,
    DecodeError,
    ListValue,
    MarshalError,
    MessageValue,
    PipelineError,
    PipelineIOError,
    Record,
    RecordError,
    ScalarValue,
    SchemaError,
    WriteError,
)
from pbdecode.infrastructure import DescriptorRegistry, stream_records
from pbdecode.orchestrator import (
    BoundedQueue,
    Pipeline,
    PipelineConfig,
    PipelineOutcome,
    PipelineState,
    run_pipeline,
)
from pbdecode.utils.logging import configure_logging, get_logger

__all__ = [
    # Version info
    "__version__",
    "__license__",
    # Configuration
    "Settings",
    "get_settings",
    # Schema and decoding
    "DescriptorRegistry",
    "decode",
    "decode_payload",
    "flatten",
    "normalize",
    # Models
    "ListValue",
    "MessageValue",
    "Record",
    "ScalarValue",
    # Pipeline
    "BoundedQueue",
    "Pipeline",
    "PipelineConfig",
    "PipelineOutcome",
    "PipelineState",
    "run_pipeline",
    "stream_records",
    # Errors
    "ConfigError",
    "DecodeError",
    "MarshalError",
    "PipelineError",
    "PipelineIOError",
    "RecordError",
    "SchemaError",
    "WriteError",
    # Logging
    "configure_logging",
    "get_logger",
]
