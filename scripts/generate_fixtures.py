"""
Fixture generation script for pbdecode.

Builds a sample descriptor set programmatically (no protoc needed) and writes
deterministic pseudo-random rows whose payload column is a hex-encoded
``demo.Person`` message. Useful for trying the CLI and for benchmarking the
worker pool.
"""

from __future__ import annotations

import csv
import random
import sys
import time
from pathlib import Path
from typing import Iterable, Optional

import typer
from google.protobuf import descriptor_pb2

from pbdecode.infrastructure.registry import DescriptorRegistry

app = typer.Typer(help="Generate a sample descriptor set and hex payload rows.")

_F = descriptor_pb2.FieldDescriptorProto


def _field(
    name: str,
    number: int,
    type_: int,
    label: int = _F.LABEL_OPTIONAL,
    type_name: Optional[str] = None,
) -> descriptor_pb2.FieldDescriptorProto:
    field = _F(name=name, number=number, type=type_, label=label)
    if type_name:
        field.type_name = type_name
    return field


def person_file() -> descriptor_pb2.FileDescriptorProto:
    """``pkg.Person{name: string = 1, age: int32 = 2}``"""
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="pkg/person.proto", package="pkg", syntax="proto3"
    )
    person = file_proto.message_type.add(name="Person")
    person.field.extend(
        [
            _field("name", 1, _F.TYPE_STRING),
            _field("age", 2, _F.TYPE_INT32),
        ]
    )
    return file_proto


def demo_file() -> descriptor_pb2.FileDescriptorProto:
    """
    ``demo.Person`` exercising nested, repeated, map, enum, bytes, float and 64-bit fields.
    """
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="demo/person.proto", package="demo", syntax="proto3"
    )
    status = file_proto.enum_type.add(name="Status")
    for index, value in enumerate(["STATUS_UNKNOWN", "ACTIVE", "SUSPENDED"]):
        status.value.add(name=value, number=index)

    address = file_proto.message_type.add(name="Address")
    address.field.extend(
        [
            _field("city", 1, _F.TYPE_STRING),
            _field("zip", 2, _F.TYPE_INT32),
        ]
    )

    person = file_proto.message_type.add(name="Person")
    entry = person.nested_type.add(name="CountersEntry")
    entry.options.map_entry = True
    entry.field.extend(
        [
            _field("key", 1, _F.TYPE_STRING),
            _field("value", 2, _F.TYPE_INT32),
        ]
    )
    # Declaration order intentionally differs from field-number order.
    person.field.extend(
        [
            _field("name", 1, _F.TYPE_STRING),
            _field("id", 7, _F.TYPE_INT64),
            _field("age", 2, _F.TYPE_INT32),
            _field("tags", 3, _F.TYPE_STRING, label=_F.LABEL_REPEATED),
            _field("address", 4, _F.TYPE_MESSAGE, type_name=".demo.Address"),
            _field("status", 5, _F.TYPE_ENUM, type_name=".demo.Status"),
            _field("avatar", 6, _F.TYPE_BYTES),
            _field("score", 8, _F.TYPE_DOUBLE),
            _field(
                "counters",
                9,
                _F.TYPE_MESSAGE,
                label=_F.LABEL_REPEATED,
                type_name=".demo.Person.CountersEntry",
            ),
            _field(
                "previous",
                10,
                _F.TYPE_MESSAGE,
                label=_F.LABEL_REPEATED,
                type_name=".demo.Address",
            ),
            _field("ratio", 11, _F.TYPE_FLOAT),
        ]
    )
    return file_proto


def descriptor_set_bytes(files: Iterable[descriptor_pb2.FileDescriptorProto]) -> bytes:
    descriptor_set = descriptor_pb2.FileDescriptorSet()
    descriptor_set.file.extend(files)
    return descriptor_set.SerializeToString()


def _random_person(registry: DescriptorRegistry, rng: random.Random) -> bytes:
    cls = registry.message_class(registry.resolve("demo.Person"))
    person = cls()
    person.name = rng.choice(["Alice", "Bob", "Carol", "Dave", "Eve"])
    person.id = rng.randint(1, 2**40)
    person.age = rng.randint(18, 90)
    person.tags.extend(rng.sample(["admin", "beta", "ops", "qa", "staff"], k=rng.randint(0, 3)))
    if rng.random() < 0.7:
        person.address.city = rng.choice(["Lisbon", "Oslo", "Quito"])
        person.address.zip = rng.randint(1000, 99999)
    person.status = rng.randint(0, 2)
    person.score = round(rng.uniform(0, 100), 3)
    person.ratio = rng.choice([0.1, 0.5, 1.1, 2.75])
    for key in rng.sample(["logins", "posts", "likes"], k=rng.randint(0, 2)):
        person.counters[key] = rng.randint(1, 500)
    return person.SerializeToString()


def _generate(output_dir: Path, rows: int, seed: int) -> tuple[Path, Path]:
    output_dir.mkdir(parents=True, exist_ok=True)
    descriptor_path = output_dir / "demo.desc"
    rows_path = output_dir / "rows.csv"
    descriptor_path.write_bytes(descriptor_set_bytes([demo_file()]))

    registry = DescriptorRegistry()
    registry.load(descriptor_path)

    rng = random.Random(seed)
    with rows_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        for i in range(1, rows + 1):
            payload = _random_person(registry, rng).hex()
            if rng.random() < 0.5:
                payload = "0x" + payload
            writer.writerow([str(i), payload, "generator"])
    return descriptor_path, rows_path


@app.command()
def main(
    rows: int = typer.Option(1_000, "--rows", "-r", help="Number of rows to generate."),
    seed: int = typer.Option(42, "--seed", help="Deterministic RNG seed."),
    output_dir: Path = typer.Option(
        Path("fixtures"), "--output-dir", "-o", help="Directory for demo.desc and rows.csv."
    ),
) -> None:
    """
    Write demo.desc and rows.csv (columns: id,data,source).
    """
    start = time.perf_counter()
    descriptor_path, rows_path = _generate(output_dir, rows=rows, seed=seed)
    duration = time.perf_counter() - start
    typer.echo(f"Wrote {descriptor_path} and {rows:,} rows -> {rows_path} in {duration:.2f}s")
    typer.echo(
        f"Try: pbdecode decode --pb {descriptor_path} --name demo.Person "
        f"--srcfile {rows_path} --fields id,data,source"
    )


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
