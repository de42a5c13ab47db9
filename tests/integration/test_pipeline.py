"""
End-to-end tests for the decode pipeline.

These run the real producer/worker threads against descriptor sets built in
process, with an in-memory writer or a real file destination.
"""

from __future__ import annotations

import io
import json
import threading
from pathlib import Path
from typing import Callable

import pytest

from pbdecode.domain.errors import ConfigError, DecodeError, PipelineIOError, RecordError, SchemaError
from pbdecode.domain.models import Record
from pbdecode.orchestrator import Pipeline, PipelineConfig, PipelineState, run_pipeline
from pbdecode.sinks import JsonMarshaler
from scripts.generate_fixtures import _generate

ALICE_HEX = "0a05416c696365101e"
ALICE_LINE = b'{"id":"1","data":{"name":"Alice","age":30}}'
ROW_COUNT = 250


def _pipeline(registry, writer, workers: int = 4, fields=("id", "data")) -> Pipeline:
    config = PipelineConfig(
        message_name="pkg.Person", field_names=list(fields), worker_count=workers
    )
    return Pipeline(registry, config, JsonMarshaler(), writer)


def test_alice_row_is_decoded_in_place(person_registry, collecting_writer):
    outcome = _pipeline(person_registry, collecting_writer).run(io.StringIO(f"1,{ALICE_HEX}\n"))

    assert outcome.ok
    assert outcome.state is PipelineState.DRAINED
    assert collecting_writer.lines == [ALICE_LINE]


@pytest.mark.parametrize("workers", [1, 3, 16])
def test_every_row_produces_exactly_one_line(
    person_registry, collecting_writer, encode_person: Callable[..., str], workers: int
):
    rows = "".join(
        f"{i},{'0x' if i % 2 else ''}{encode_person(name=f'p{i}', age=i % 120)}\n"
        for i in range(1, ROW_COUNT + 1)
    )

    outcome = _pipeline(person_registry, collecting_writer, workers=workers).run(
        io.StringIO(rows)
    )

    assert outcome.ok, outcome.error
    assert outcome.records_read == ROW_COUNT
    assert outcome.records_written == ROW_COUNT
    decoded = [json.loads(line) for line in collecting_writer.lines]
    assert sorted(int(d["id"]) for d in decoded) == list(range(1, ROW_COUNT + 1))
    for item in decoded:
        i = int(item["id"])
        expected = {"name": f"p{i}"}
        if i % 120:
            expected["age"] = i % 120
        assert item["data"] == expected


def test_bad_payload_fails_without_output(person_registry, collecting_writer):
    outcome = _pipeline(person_registry, collecting_writer, workers=1).run(
        io.StringIO("1,0xAB\n")
    )

    assert not outcome.ok
    assert isinstance(outcome.error, DecodeError)
    assert outcome.error.context["line"] == 1
    assert collecting_writer.lines == []


def test_odd_length_payload_is_decode_error(person_registry, collecting_writer):
    outcome = _pipeline(person_registry, collecting_writer).run(io.StringIO("1,0xABC\n"))
    assert isinstance(outcome.error, DecodeError)
    assert collecting_writer.lines == []


def test_short_row_stops_ingest(person_registry, collecting_writer):
    rows = f"1,{ALICE_HEX}\n2\n3,{ALICE_HEX}\n"

    outcome = _pipeline(person_registry, collecting_writer, workers=1).run(io.StringIO(rows))

    assert isinstance(outcome.error, RecordError)
    assert outcome.error.line == 2
    assert outcome.records_read == 1
    # line 3 is never read
    assert all(json.loads(line)["id"] != "3" for line in collecting_writer.lines)


def test_first_failure_cancels_remaining_work(
    person_registry, collecting_writer, encode_person: Callable[..., str]
):
    good = encode_person(name="ok", age=1)
    rows = f"1,zz\n" + "".join(f"{i},{good}\n" for i in range(2, 5_000))

    outcome = _pipeline(person_registry, collecting_writer, workers=2).run(io.StringIO(rows))

    assert isinstance(outcome.error, DecodeError)
    assert outcome.state is PipelineState.DRAINED
    assert outcome.records_written < 4_999
    assert len(collecting_writer.lines) == outcome.records_written


def test_writer_failure_is_reported(person_registry):
    class _BrokenWriter:
        name = "broken"

        def write(self, data: bytes) -> None:
            from pbdecode.domain.errors import WriteError

            raise WriteError("disk full")

        def close(self) -> None:
            pass

    outcome = _pipeline(person_registry, _BrokenWriter()).run(io.StringIO(f"1,{ALICE_HEX}\n"))

    assert outcome.error.stage == "write"
    assert outcome.records_written == 0


def _run_with_deadline(pipeline: Pipeline, source, seconds: float = 5.0):
    result = {}
    runner = threading.Thread(target=lambda: result.update(outcome=pipeline.run(source)))
    runner.start()
    runner.join(timeout=seconds)
    assert not runner.is_alive(), "pipeline did not finish"
    return result["outcome"]


def test_non_record_items_fail_the_run(person_registry, collecting_writer):
    pipeline = _pipeline(person_registry, collecting_writer, workers=1)

    outcome = _run_with_deadline(pipeline, ["0a01"] * 10)

    assert isinstance(outcome.error, RecordError)
    assert collecting_writer.lines == []


def test_worker_killed_by_base_exception_still_ends_run(person_registry):
    class _ExitingWriter:
        name = "exiting"

        def write(self, data: bytes) -> None:
            raise SystemExit(3)

        def close(self) -> None:
            pass

    rows = "".join(f"{i},{ALICE_HEX}\n" for i in range(1, 200))
    pipeline = _pipeline(person_registry, _ExitingWriter(), workers=1)

    outcome = _run_with_deadline(pipeline, io.StringIO(rows))

    assert not outcome.ok
    assert "exited abnormally" in str(outcome.error)


def test_accepts_prebuilt_records(person_registry, collecting_writer):
    records = [Record(line=1, data={"id": "1", "data": ALICE_HEX})]
    outcome = _pipeline(person_registry, collecting_writer).run(records)
    assert collecting_writer.lines == [ALICE_LINE]
    assert outcome.records_read == 1


def test_pipeline_runs_only_once(person_registry, collecting_writer):
    pipeline = _pipeline(person_registry, collecting_writer)
    pipeline.run(io.StringIO(""))
    with pytest.raises(RuntimeError, match="already ran"):
        pipeline.run(io.StringIO(""))


def test_unknown_message_fails_at_construction(person_registry, collecting_writer):
    config = PipelineConfig(message_name="pkg.Ghost", field_names=["data"])
    with pytest.raises(SchemaError):
        Pipeline(person_registry, config, JsonMarshaler(), collecting_writer)


class TestRunPipeline:
    def test_file_round_trip(self, person_descriptor_path: Path, tmp_path: Path):
        src = tmp_path / "rows.csv"
        src.write_text(f"1,{ALICE_HEX}\n", encoding="utf-8")
        dst = tmp_path / "out.jsonl"

        outcome = run_pipeline(
            descriptor_set=person_descriptor_path,
            message_name="pkg.Person",
            srcfile=src,
            dstfile=dst,
            writer="file",
            field_names=["id", "data"],
            workers=2,
        )

        assert outcome.ok
        assert dst.read_bytes() == ALICE_LINE + b"\n"

    def test_srcfile_wins_over_inline_data(self, person_descriptor_path: Path, tmp_path: Path):
        src = tmp_path / "rows.csv"
        src.write_text(f"1,{ALICE_HEX}\n", encoding="utf-8")
        dst = tmp_path / "out.jsonl"

        run_pipeline(
            descriptor_set=person_descriptor_path,
            message_name="pkg.Person",
            data="9,0xAB",
            srcfile=src,
            dstfile=dst,
            writer="file",
            field_names=["id", "data"],
        ).raise_for_error()

        assert json.loads(dst.read_text())["id"] == "1"

    def test_inline_data_to_console(self, person_descriptor_path: Path, capsys):
        outcome = run_pipeline(
            descriptor_set=person_descriptor_path,
            message_name="pkg.Person",
            data="0x" + ALICE_HEX,
        )

        assert outcome.ok
        assert capsys.readouterr().out == '{"data":{"name":"Alice","age":30}}\n'

    def test_payload_field_missing_is_config_error_before_io(
        self, person_descriptor_path: Path, tmp_path: Path
    ):
        dst = tmp_path / "out.jsonl"
        with pytest.raises(ConfigError):
            run_pipeline(
                descriptor_set=person_descriptor_path,
                message_name="pkg.Person",
                data=f"1,{ALICE_HEX}",
                dstfile=dst,
                writer="file",
                field_names=["id", "blob"],
            )
        assert not dst.exists()

    def test_zero_workers_is_config_error(self, person_descriptor_path: Path):
        with pytest.raises(ConfigError, match="worker count"):
            run_pipeline(
                descriptor_set=person_descriptor_path,
                message_name="pkg.Person",
                data=ALICE_HEX,
                workers=0,
            )

    def test_unknown_message_creates_no_destination(
        self, person_descriptor_path: Path, tmp_path: Path
    ):
        dst = tmp_path / "out.jsonl"
        with pytest.raises(SchemaError):
            run_pipeline(
                descriptor_set=person_descriptor_path,
                message_name="pkg.Ghost",
                data=ALICE_HEX,
                dstfile=dst,
                writer="file",
            )
        assert not dst.exists()

    def test_missing_source_file(self, person_descriptor_path: Path, tmp_path: Path):
        with pytest.raises(PipelineIOError):
            run_pipeline(
                descriptor_set=person_descriptor_path,
                message_name="pkg.Person",
                srcfile=tmp_path / "nope.csv",
            )

    def test_input_is_required(self, person_descriptor_path: Path):
        with pytest.raises(ConfigError, match="inline data or a source file"):
            run_pipeline(descriptor_set=person_descriptor_path, message_name="pkg.Person")

    def test_generated_fixtures_decode_fully(self, tmp_path: Path):
        descriptor_path, rows_path = _generate(tmp_path / "fx", rows=120, seed=7)
        dst = tmp_path / "out.jsonl"

        outcome = run_pipeline(
            descriptor_set=descriptor_path,
            message_name="demo.Person",
            srcfile=rows_path,
            dstfile=dst,
            writer="file",
            field_names=["id", "data", "source"],
            workers=5,
        )

        assert outcome.ok, outcome.error
        lines = [json.loads(line) for line in dst.read_text().splitlines()]
        assert len(lines) == 120
        assert {line["source"] for line in lines} == {"generator"}
        assert all("name" in line["data"] for line in lines)
