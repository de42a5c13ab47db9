"""
Infrastructure package for pbdecode.

Centralizes schema loading and tabular input concerns. Keep this layer
focused on I/O and resource management, decoupled from decoding and
orchestration logic.
"""

from pbdecode.infrastructure.registry import DescriptorRegistry
from pbdecode.infrastructure.source import inline_source, open_source, stream_records

__all__ = [
    "DescriptorRegistry",
    "inline_source",
    "open_source",
    "stream_records",
]
