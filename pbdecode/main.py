from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

import typer

from pbdecode.config import get_settings, split_fields
from pbdecode.domain.errors import ConfigError, PipelineError
from pbdecode.infrastructure.registry import DescriptorRegistry
from pbdecode.orchestrator import run_pipeline
from pbdecode.reporter import print_summary
from pbdecode.sinks import available_marshalers, available_writers
from pbdecode.utils.logging import configure_logging

app = typer.Typer(help="Decode hex protobuf payloads in delimited rows using a runtime descriptor set.")


def _fail(exc: PipelineError) -> None:
    typer.echo(f"error [{exc.stage}]: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"descriptor_set={settings.descriptor_set} message={settings.message_name} | "
        f"workers={settings.workers} queue_factor={settings.queue_factor} "
        f"fields={settings.field_list} payload_field={settings.payload_field}"
    )
    typer.echo(
        f"writer={settings.writer} (available: {', '.join(available_writers())}) | "
        f"marshaler={settings.marshaler} (available: {', '.join(available_marshalers())})"
    )


@app.command()
def messages(
    pb: Optional[Path] = typer.Option(
        None, "--pb", help="Descriptor set file (protoc --descriptor_set_out)."
    ),
) -> None:
    """
    List the message types registered from a descriptor set.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    path = pb or settings.descriptor_set
    registry = DescriptorRegistry()
    try:
        if not path:
            raise ConfigError("A descriptor set path is required")
        registry.load(path)
    except PipelineError as exc:
        _fail(exc)
    for name in registry.message_names():
        typer.echo(name)


@app.command()
def decode(
    pb: Optional[Path] = typer.Option(
        None, "--pb", help="Descriptor set file (protoc --descriptor_set_out)."
    ),
    name: Optional[str] = typer.Option(
        None, "--name", "-n", help="Fully qualified message name, e.g. pkg.Person."
    ),
    data: Optional[str] = typer.Option(
        None, "--data", help="Inline input rows (comma-delimited)."
    ),
    srcfile: Optional[Path] = typer.Option(
        None, "--srcfile", help="Source file of comma-delimited rows; wins over --data."
    ),
    dstfile: Optional[Path] = typer.Option(
        None, "--dstfile", help="Output file, required with --writer file."
    ),
    recv: Optional[int] = typer.Option(
        None, "--recv", "-w", help="Number of decode workers (default from settings: 10)."
    ),
    writer: Optional[str] = typer.Option(
        None, "--writer", help="Writer name: console, file."
    ),
    marshaler: Optional[str] = typer.Option(
        None, "--marshaler", help="Marshaler name: json."
    ),
    fields: Optional[str] = typer.Option(
        None, "--fields", help="Comma separated names of every input column."
    ),
    data_field: Optional[str] = typer.Option(
        None, "--data-field", "--dataField", help="Column holding the hex payload."
    ),
    summary: bool = typer.Option(
        False, "--summary", help="Print a run summary table to stderr."
    ),
    json_logs: bool = typer.Option(False, "--json-logs", help="Emit logs as JSON."),
) -> None:
    """
    Decode every row's payload column and write one JSON object per row.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=json_logs or settings.log_json)

    try:
        outcome = run_pipeline(
            descriptor_set=pb,
            message_name=name,
            data=data,
            srcfile=srcfile,
            dstfile=dstfile,
            workers=recv,
            writer=writer,
            marshaler=marshaler,
            field_names=split_fields(fields) if fields is not None else None,
            payload_field=data_field,
            settings=settings,
        )
    except PipelineError as exc:
        _fail(exc)
        return

    if summary:
        print_summary(outcome, name or settings.message_name or "")
    if not outcome.ok:
        _fail(outcome.error)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
