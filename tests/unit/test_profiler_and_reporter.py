from __future__ import annotations

import io
from time import sleep

from rich.console import Console

from pbdecode.domain.errors import DecodeError
from pbdecode.orchestrator import PipelineOutcome, PipelineState
from pbdecode.reporter import print_summary
from pbdecode.utils import profiler


def test_profile_block_measures_time():
    with profiler.profile_block("sleep") as stats:
        sleep(0.05)
    assert stats.duration_seconds >= 0.05
    assert stats.peak_rss_bytes is None or stats.peak_rss_bytes > 0
    if stats.cpu_percent is not None:
        assert isinstance(stats.cpu_percent, float)


def test_outcome_throughput_and_dict():
    outcome = PipelineOutcome(
        state=PipelineState.DRAINED, records_read=10, records_written=10, duration_seconds=2.0
    )
    assert outcome.ok
    assert outcome.throughput_records_per_sec == 5.0
    data = outcome.as_dict()
    assert data["state"] == "drained"
    assert data["error"] is None


def test_summary_renders_failure_details():
    outcome = PipelineOutcome(
        state=PipelineState.DRAINED,
        records_read=3,
        records_written=1,
        error=DecodeError("Invalid wire data for 'pkg.Person' [line 2]"),
        duration_seconds=0.5,
    )
    buffer = io.StringIO()

    print_summary(outcome, "pkg.Person", console=Console(file=buffer, width=120))

    text = buffer.getvalue()
    assert "failed (decode)" in text
    assert "Records written" in text
    assert "[line 2]" in text
