"""
Pipeline coordinator for pbdecode.

One producer thread streams Records from the tabular source into a bounded
queue; ``worker_count`` worker threads pull Records, decode the payload field
in place, marshal the whole Record and hand the bytes to the shared writer.

Usage (example from CLI):
    from pbdecode.orchestrator import run_pipeline

    outcome = run_pipeline(
        descriptor_set="person.desc",
        message_name="pkg.Person",
        srcfile="rows.csv",
        field_names=["id", "data"],
    )
    outcome.raise_for_error()

The first failure in any thread cancels the queue; the remaining threads stop
at their next queue operation and ``run`` returns a PipelineOutcome carrying
that error. Output order is not related to input order.
"""

from __future__ import annotations

import enum
import io
import threading
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, Generic, Iterable, List, Optional, Sequence, TextIO, TypeVar, Union

from pydantic import BaseModel, ValidationError, model_validator

from pbdecode.config import Settings, get_settings
from pbdecode.decoder import decode, normalize
from pbdecode.domain.errors import ConfigError, PipelineError, RecordError
from pbdecode.domain.models import Record
from pbdecode.infrastructure.registry import DescriptorRegistry
from pbdecode.infrastructure.source import inline_source, open_source, stream_records
from pbdecode.sinks import Marshaler, Writer, build_marshaler, build_writer, check_writer
from pbdecode.utils.logging import get_logger
from pbdecode.utils.profiler import ProfileStats, profile_block

log = get_logger(__name__)

T = TypeVar("T")


class PipelineState(str, enum.Enum):
    INIT = "init"
    STREAMING = "streaming"
    DRAINED = "drained"


class BoundedQueue(Generic[T]):
    """
    Bounded, closeable, cancellable FIFO shared by one producer and N consumers.

    ``put`` blocks while the queue is full and ``get`` blocks while it is empty
    and still open. After ``close`` consumers drain what is left and then get
    ``None``. ``cancel`` drops queued items and releases every waiter at once.
    """

    def __init__(self, capacity: int) -> None:
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._items: Deque[T] = deque()
        self._closed = False
        self._cancelled = False
        self._cond = threading.Condition()

    def __len__(self) -> int:
        with self._cond:
            return len(self._items)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def put(self, item: T) -> bool:
        """Enqueue ``item``; returns False if the queue was cancelled instead."""
        with self._cond:
            while len(self._items) >= self.capacity and not self._cancelled:
                self._cond.wait()
            if self._cancelled:
                return False
            if self._closed:
                raise RuntimeError("put() on a closed queue")
            self._items.append(item)
            self._cond.notify_all()
            return True

    def get(self) -> Optional[T]:
        """Dequeue the next item, or None once closed and drained (or cancelled)."""
        with self._cond:
            while not self._items and not self._closed and not self._cancelled:
                self._cond.wait()
            if self._cancelled or not self._items:
                return None
            item = self._items.popleft()
            self._cond.notify_all()
            return item

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def cancel(self) -> None:
        with self._cond:
            self._cancelled = True
            self._items.clear()
            self._cond.notify_all()


class PipelineConfig(BaseModel):
    """
    Validated pipeline options. Invalid combinations raise ConfigError.
    """

    message_name: str
    field_names: List[str]
    payload_field: str = "data"
    worker_count: int = 10
    queue_capacity: Optional[int] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def check_consistency(self) -> "PipelineConfig":
        if not self.message_name:
            raise ConfigError("The message name can't be empty")
        if not self.field_names:
            raise ConfigError("The field list can't be empty")
        if any(not name for name in self.field_names):
            raise ConfigError("The field's name can't be empty")
        if len(set(self.field_names)) != len(self.field_names):
            raise ConfigError(f"Duplicate field names in {self.field_names}")
        if self.payload_field not in self.field_names:
            raise ConfigError(
                f"The data field '{self.payload_field}' isn't in fields list",
                context={"fields": self.field_names, "payload_field": self.payload_field},
            )
        if self.worker_count <= 0:
            raise ConfigError(
                f"The worker count must be positive, got {self.worker_count}",
                context={"worker_count": self.worker_count},
            )
        if self.queue_capacity is not None and self.queue_capacity <= 0:
            raise ConfigError(
                f"The queue capacity must be positive, got {self.queue_capacity}",
                context={"queue_capacity": self.queue_capacity},
            )
        return self

    @property
    def capacity(self) -> int:
        """Queue capacity; twice the worker count unless set explicitly."""
        return self.queue_capacity or 2 * self.worker_count

    @classmethod
    def from_options(cls, **options: object) -> "PipelineConfig":
        """Build a config, reporting type errors as ConfigError as well."""
        try:
            return cls(**options)
        except ValidationError as exc:
            raise ConfigError("Invalid pipeline options", cause=exc) from exc


@dataclass
class PipelineOutcome:
    """Result of one pipeline run."""

    state: PipelineState
    records_read: int = 0
    records_written: int = 0
    error: Optional[PipelineError] = None
    duration_seconds: float = 0.0
    peak_rss_bytes: Optional[int] = None
    cpu_percent: Optional[float] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def throughput_records_per_sec(self) -> float:
        if not self.duration_seconds:
            return 0.0
        return round(self.records_written / self.duration_seconds, 2)

    def raise_for_error(self) -> None:
        if self.error is not None:
            raise self.error

    def as_dict(self) -> dict:
        return {
            "state": self.state.value,
            "records_read": self.records_read,
            "records_written": self.records_written,
            "error": str(self.error) if self.error else None,
            "error_stage": self.error.stage if self.error else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "throughput_records_per_sec": self.throughput_records_per_sec,
            "peak_rss_bytes": self.peak_rss_bytes,
            "cpu_percent": self.cpu_percent,
        }


class Pipeline:
    """
    INIT -> STREAMING -> DRAINED coordinator over a BoundedQueue.

    Construction resolves the target message so an unknown name fails
    before any input is read. A Pipeline runs once.
    """

    def __init__(
        self,
        registry: DescriptorRegistry,
        config: PipelineConfig,
        marshaler: Marshaler,
        writer: Writer,
    ) -> None:
        self.registry = registry
        self.config = config
        self.marshaler = marshaler
        self.writer = writer
        self.descriptor = registry.resolve(config.message_name)
        self.state = PipelineState.INIT

        self._queue: BoundedQueue[Record] = BoundedQueue(config.capacity)
        self._lock = threading.Lock()
        self._error: Optional[PipelineError] = None
        self._read = 0
        self._written = 0

    def run(self, source: Union[TextIO, Iterable[Record]]) -> PipelineOutcome:
        """
        Stream ``source`` through the workers and wait for all of them.

        ``source`` is either a text stream of delimited rows or an iterable of
        ready-made Records.
        """
        if self.state is not PipelineState.INIT:
            raise RuntimeError(f"Pipeline already ran (state={self.state.value})")

        if isinstance(source, io.TextIOBase):
            records: Iterable[Record] = stream_records(source, self.config.field_names)
        else:
            records = source

        log.info(
            "[PIPELINE START]",
            extra={
                "message_type": self.config.message_name,
                "workers": self.config.worker_count,
                "queue_capacity": self.config.capacity,
            },
        )
        with profile_block("pipeline") as stats:
            self.state = PipelineState.STREAMING
            threads = [
                threading.Thread(target=self._produce, args=(records,), name="pbdecode-producer")
            ]
            threads += [
                threading.Thread(target=self._work, args=(i,), name=f"pbdecode-worker-{i}")
                for i in range(self.config.worker_count)
            ]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()
            self.state = PipelineState.DRAINED

        outcome = self._outcome(stats)
        if outcome.ok:
            log.info(
                "[PIPELINE COMPLETE]",
                extra={
                    "records": outcome.records_written,
                    "duration": round(outcome.duration_seconds, 3),
                },
            )
        else:
            log.error(
                f"[PIPELINE FAILED] {outcome.error}",
                extra={
                    "stage": outcome.error.stage,
                    "records_read": outcome.records_read,
                    "records_written": outcome.records_written,
                },
            )
        return outcome

    def _outcome(self, stats: ProfileStats) -> PipelineOutcome:
        return PipelineOutcome(
            state=self.state,
            records_read=self._read,
            records_written=self._written,
            error=self._error,
            duration_seconds=stats.duration_seconds,
            peak_rss_bytes=stats.peak_rss_bytes,
            cpu_percent=stats.cpu_percent,
        )

    def _fail(self, error: PipelineError) -> None:
        with self._lock:
            if self._error is None:
                self._error = error
        self._queue.cancel()

    def _produce(self, records: Iterable[Record]) -> None:
        try:
            for record in records:
                if not self._queue.put(record):
                    return
                with self._lock:
                    self._read += 1
        except PipelineError as exc:
            self._fail(exc)
        except Exception as exc:  # noqa: BLE001 - any source failure ends the run
            self._fail(PipelineError(f"Unexpected source failure: {exc!r}", cause=exc))
        finally:
            self._queue.close()

    def _work(self, worker_id: int) -> None:
        finished = False
        try:
            while True:
                record = self._queue.get()
                if record is None:
                    break
                line = getattr(record, "line", None)
                try:
                    self._process(record)
                except PipelineError as exc:
                    exc.context.setdefault("line", line)
                    self._fail(exc)
                    break
                except Exception as exc:  # noqa: BLE001 - any worker failure ends the run
                    self._fail(
                        PipelineError(
                            f"Unexpected failure on line {line}: {exc!r}",
                            cause=exc,
                            context={"line": line},
                        )
                    )
                    break
            finished = True
        finally:
            # cancel so the producer never waits on a queue nobody drains
            if not finished:
                self._fail(PipelineError(f"Worker {worker_id} exited abnormally"))
            log.debug("Worker exited", extra={"worker": worker_id})

    def _process(self, record: Record) -> None:
        if not isinstance(record, Record):
            raise RecordError(
                f"Expected a Record, got {type(record).__name__}",
                line=getattr(record, "line", 0),
            )
        field = self.config.payload_field
        payload = record.data.get(field)
        if not isinstance(payload, (str, bytes)):
            raise RecordError(f"Line {record.line} has no payload field '{field}'", line=record.line)

        record.data[field] = decode(normalize(payload), self.descriptor, self.registry)
        text = self.marshaler.marshal(record.to_mapping())
        self.writer.write(text)
        with self._lock:
            self._written += 1


def run_pipeline(
    *,
    descriptor_set: Optional[Path | str] = None,
    message_name: Optional[str] = None,
    data: Optional[str] = None,
    srcfile: Optional[Path | str] = None,
    dstfile: Optional[Path | str] = None,
    workers: Optional[int] = None,
    writer: Optional[str] = None,
    marshaler: Optional[str] = None,
    field_names: Optional[Sequence[str]] = None,
    payload_field: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> PipelineOutcome:
    """
    Build registry, sink and pipeline from options (falling back to settings)
    and run it.

    Problems found before streaming starts (ConfigError, SchemaError,
    PipelineIOError) are raised; failures during streaming are returned in
    the outcome.
    """
    settings = settings or get_settings()
    descriptor_set = descriptor_set or settings.descriptor_set
    writer_name = writer or settings.writer
    worker_count = workers if workers is not None else settings.workers

    if not descriptor_set:
        raise ConfigError("A descriptor set path is required")
    if srcfile is None and data is None:
        raise ConfigError("Either inline data or a source file is required")

    config = PipelineConfig.from_options(
        message_name=message_name or settings.message_name or "",
        field_names=list(field_names) if field_names is not None else settings.field_names,
        payload_field=payload_field or settings.payload_field,
        worker_count=worker_count,
        queue_capacity=settings.queue_factor * worker_count if worker_count > 0 else None,
    )
    chosen_marshaler = build_marshaler(marshaler or settings.marshaler)
    check_writer(writer_name, dstfile)

    registry = DescriptorRegistry()
    registry.load(descriptor_set)
    registry.resolve(config.message_name)

    source = open_source(srcfile) if srcfile else inline_source(data or "")
    try:
        sink = build_writer(writer_name, dstfile)
        try:
            return Pipeline(registry, config, chosen_marshaler, sink).run(source)
        finally:
            sink.close()
    finally:
        source.close()


__all__ = [
    "BoundedQueue",
    "Pipeline",
    "PipelineConfig",
    "PipelineOutcome",
    "PipelineState",
    "run_pipeline",
]
