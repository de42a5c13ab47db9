"""
Record source for pbdecode.

Streams comma-delimited rows into Records, binding columns positionally to the
configured field names. The stream is lazy and consumes its input as it goes.
"""

from __future__ import annotations

import csv
import io
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, TextIO

from pbdecode.domain.errors import PipelineIOError, RecordError
from pbdecode.domain.models import Record


def _bare_quote_column(raw: str) -> Optional[int]:
    """1-based position of a quote inside a field that did not start quoted."""
    at_start, quoted, closing = True, False, False
    for index, char in enumerate(raw):
        if quoted:
            if char == '"':
                quoted, closing = False, True
            continue
        if char in ",\r\n":
            at_start, closing = True, False
        elif char == '"':
            if at_start or closing:
                # opening quote, or the second half of an escaped ""
                quoted, at_start, closing = True, False, False
            else:
                return index + 1
        else:
            at_start, closing = False, False
    return None


def stream_records(source: TextIO, field_names: Sequence[str]) -> Iterator[Record]:
    """
    Yield one Record per non-blank row of ``source``.

    Raises
    ------
    RecordError
        If a row has fewer columns than ``field_names`` (fatal for the stream)
        or the delimited text itself is malformed.
    """
    consumed: List[str] = []

    def _lines() -> Iterator[str]:
        for raw in source:
            consumed.append(raw)
            yield raw

    reader = csv.reader(_lines(), strict=True)
    line = 0
    while True:
        try:
            row = next(reader)
        except StopIteration:
            return
        except csv.Error as exc:
            raise RecordError(
                f"Malformed delimited text after line {line}", line=line + 1, cause=exc
            ) from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise PipelineIOError(f"Cannot read input after line {line}", cause=exc) from exc
        raw_row = "".join(consumed)
        consumed.clear()
        if not row:
            continue
        line += 1
        column = _bare_quote_column(raw_row)
        if column is not None:
            raise RecordError(
                f'Line {line} has a bare " in non-quoted field (column {column})',
                line=line,
                context={"column": column},
            )
        if len(row) < len(field_names):
            raise RecordError(
                f"Line {line} has {len(row)} column(s), expected at least {len(field_names)}",
                line=line,
                context={"columns": len(row), "expected": len(field_names)},
            )
        yield Record(line=line, data={name: row[i] for i, name in enumerate(field_names)})


def open_source(path: Path | str) -> TextIO:
    """Open a source file for ``stream_records``."""
    try:
        return Path(path).open("r", newline="", encoding="utf-8")
    except OSError as exc:
        raise PipelineIOError(
            f"Cannot open source file '{path}'", cause=exc, context={"path": str(path)}
        ) from exc


def inline_source(text: str) -> TextIO:
    """Wrap inline payload text as a readable stream."""
    return io.StringIO(text, newline="")


__all__ = ["inline_source", "open_source", "stream_records"]
