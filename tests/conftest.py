"""
Pytest configuration for pbdecode.

Provides fixtures for:
- Descriptor sets built in-process (no protoc needed)
- Loaded registries and payload encoders
- Settings isolation between tests
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable, List

import pytest

from pbdecode.config import get_settings
from pbdecode.infrastructure.registry import DescriptorRegistry
from scripts.generate_fixtures import demo_file, descriptor_set_bytes, person_file

# pkg.Person{name: "Alice", age: 30}
ALICE_HEX = "0a05416c696365101e"


class CollectingWriter:
    """Thread-safe in-memory writer used to observe pipeline output."""

    name = "collecting"

    def __init__(self) -> None:
        self.lines: List[bytes] = []
        self.closed = False
        self._lock = threading.Lock()

    def write(self, data: bytes) -> None:
        with self._lock:
            self.lines.append(data)

    def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch: pytest.MonkeyPatch):
    """
    Keep environment-driven settings from leaking between tests.
    """
    for var in (
        "PBDECODE_DESCRIPTOR_SET",
        "PBDECODE_MESSAGE_NAME",
        "PBDECODE_WORKERS",
        "PBDECODE_QUEUE_FACTOR",
        "PBDECODE_FIELDS",
        "PBDECODE_PAYLOAD_FIELD",
        "PBDECODE_WRITER",
        "PBDECODE_MARSHALER",
        "LOG_JSON",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture(autouse=True)
def _restore_root_logging():
    """CLI commands reconfigure the root logger; undo that after each test."""
    root = logging.getLogger()
    handlers, level = set(root.handlers), root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


@pytest.fixture
def person_descriptor_path(tmp_path: Path) -> Path:
    """Descriptor set file whose first entry defines pkg.Person."""
    path = tmp_path / "person.desc"
    path.write_bytes(descriptor_set_bytes([person_file()]))
    return path


@pytest.fixture
def demo_descriptor_path(tmp_path: Path) -> Path:
    path = tmp_path / "demo.desc"
    path.write_bytes(descriptor_set_bytes([demo_file()]))
    return path


@pytest.fixture
def person_registry(person_descriptor_path: Path) -> DescriptorRegistry:
    registry = DescriptorRegistry()
    registry.load(person_descriptor_path)
    return registry


@pytest.fixture
def demo_registry(demo_descriptor_path: Path) -> DescriptorRegistry:
    registry = DescriptorRegistry()
    registry.load(demo_descriptor_path)
    return registry


@pytest.fixture
def encode_person(person_registry: DescriptorRegistry) -> Callable[..., str]:
    """
    Encode a pkg.Person to hex text.
    """
    cls = person_registry.message_class(person_registry.resolve("pkg.Person"))

    def _encode(name: str = "", age: int = 0) -> str:
        return cls(name=name, age=age).SerializeToString().hex()

    return _encode


@pytest.fixture
def collecting_writer() -> CollectingWriter:
    return CollectingWriter()
