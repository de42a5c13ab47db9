"""
Output sink interfaces for pbdecode.

A sink is two orthogonal capabilities: a Marshaler turns a record mapping into
bytes, and a Writer delivers those bytes somewhere durable. Concrete classes
implement the Protocols (or subclass the ABC helpers) so the orchestrator can
compose any marshaler with any writer.
"""

from __future__ import annotations

import abc
from typing import Any, Mapping, Protocol, runtime_checkable


@runtime_checkable
class Marshaler(Protocol):
    """
    Serialization strategy: mapping -> bytes.

    Attributes
    ----------
    name : str
        A short machine-friendly identifier.
    """

    name: str

    def marshal(self, value: Mapping[str, Any]) -> bytes:
        """
        Serialize one record mapping.

        Raises
        ------
        MarshalError
            If the mapping cannot be encoded.
        """
        ...


@runtime_checkable
class Writer(Protocol):
    """
    Destination strategy: bytes -> durable effect.

    Implementations must be safe for concurrent ``write`` calls; each call
    emits exactly one record terminated by a newline.
    """

    name: str

    def write(self, data: bytes) -> None:
        """Write one serialized record. Raises WriteError on failure."""
        ...

    def close(self) -> None:
        """Release the destination. Safe to call more than once."""
        ...


class AbstractMarshaler(abc.ABC):
    """Optional ABC helper for class-based marshalers."""

    name: str

    @abc.abstractmethod
    def marshal(self, value: Mapping[str, Any]) -> bytes:  # pragma: no cover - interface only
        raise NotImplementedError


class AbstractWriter(abc.ABC):
    """Optional ABC helper for class-based writers."""

    name: str

    @abc.abstractmethod
    def write(self, data: bytes) -> None:  # pragma: no cover - interface only
        raise NotImplementedError

    def close(self) -> None:
        return None

    def __enter__(self) -> "AbstractWriter":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = [
    "AbstractMarshaler",
    "AbstractWriter",
    "Marshaler",
    "Writer",
]
