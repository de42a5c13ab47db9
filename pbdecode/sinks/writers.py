"""
Writers for pbdecode output.

Both writers hold a lock around "payload + newline" so records from
concurrent workers never interleave within a line.
"""

from __future__ import annotations

import sys
import threading
from pathlib import Path
from typing import BinaryIO, Optional, TextIO

from pbdecode.domain.errors import PipelineIOError, WriteError
from pbdecode.sinks.abstract import AbstractWriter


class ConsoleWriter(AbstractWriter):
    """
    One line per record on a text stream (stdout unless overridden).

    The stream is looked up at write time when not given explicitly, so
    redirected stdout (e.g. in tests) is honoured.
    """

    name: str = "console"

    def __init__(self, stream: Optional[TextIO] = None) -> None:
        self._stream = stream
        self._lock = threading.Lock()

    def write(self, data: bytes) -> None:
        stream = self._stream or sys.stdout
        try:
            text = data.decode("utf-8")
            with self._lock:
                stream.write(text + "\n")
                stream.flush()
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            raise WriteError("Cannot write record to console", cause=exc) from exc


class FileWriter(AbstractWriter):
    """
    Newline-terminated records appended to a file created (or truncated) on open.
    """

    name: str = "file"

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()
        self._file: Optional[BinaryIO] = None
        self._closed = False

    def open(self) -> "FileWriter":
        if self._file is None:
            try:
                self._file = self.path.open("wb")
            except OSError as exc:
                raise PipelineIOError(
                    f"Cannot open destination file '{self.path}'",
                    cause=exc,
                    context={"path": str(self.path)},
                ) from exc
        return self

    def write(self, data: bytes) -> None:
        with self._lock:
            if self._closed:
                raise WriteError(f"Destination '{self.path}' is closed")
            if self._file is None:
                self.open()
            try:
                self._file.write(data)
                self._file.write(b"\n")
            except (OSError, ValueError) as exc:
                raise WriteError(
                    f"Cannot write record to '{self.path}'",
                    cause=exc,
                    context={"path": str(self.path)},
                ) from exc

    def close(self) -> None:
        with self._lock:
            self._closed = True
            if self._file is not None:
                self._file.close()
                self._file = None


__all__ = ["ConsoleWriter", "FileWriter"]
