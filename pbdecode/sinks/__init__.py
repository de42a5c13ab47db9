"""
Sinks package for pbdecode.

Re-exports the sink interfaces and concrete marshalers/writers, and holds the
name -> factory registries used by the CLI and orchestrator.
"""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Dict, List, Optional

from pbdecode.domain.errors import ConfigError
from pbdecode.sinks.abstract import AbstractMarshaler, AbstractWriter, Marshaler, Writer
from pbdecode.sinks.marshalers import JsonMarshaler
from pbdecode.sinks.writers import ConsoleWriter, FileWriter


def _marshaler_factories() -> Dict[str, Callable[[], Marshaler]]:
    """Registry of available marshalers."""
    return {
        "json": lambda: JsonMarshaler(),
    }


def _writer_factories() -> Dict[str, Callable[[Optional[Path]], Writer]]:
    """Registry of available writers; each factory receives the destination path."""

    def _file(destination: Optional[Path]) -> Writer:
        return FileWriter(destination).open()

    return {
        "console": lambda destination: ConsoleWriter(),
        "file": _file,
    }


def available_marshalers() -> List[str]:
    """List available marshaler names."""
    return sorted(_marshaler_factories().keys())


def available_writers() -> List[str]:
    """List available writer names."""
    return sorted(_writer_factories().keys())


def build_marshaler(name: str) -> Marshaler:
    factories = _marshaler_factories()
    if name not in factories:
        raise ConfigError(
            f"Invalid marshaler name '{name}'. Available: {', '.join(sorted(factories))}"
        )
    return factories[name]()


def check_writer(name: str, destination: Optional[Path | str] = None) -> None:
    """Validate writer options without touching the destination."""
    if name not in _writer_factories():
        raise ConfigError(
            f"Invalid writer name '{name}'. Available: {', '.join(available_writers())}"
        )
    if name == FileWriter.name and not destination:
        raise ConfigError("The file writer requires a destination path")


def build_writer(name: str, destination: Optional[Path | str] = None) -> Writer:
    """
    Build a writer by name. The file writer opens its destination immediately.
    """
    check_writer(name, destination)
    return _writer_factories()[name](Path(destination) if destination else None)


__all__ = [
    # Abstracts
    "AbstractMarshaler",
    "AbstractWriter",
    "Marshaler",
    "Writer",
    # Concrete sinks
    "ConsoleWriter",
    "FileWriter",
    "JsonMarshaler",
    # Registries
    "available_marshalers",
    "available_writers",
    "build_marshaler",
    "build_writer",
    "check_writer",
]
