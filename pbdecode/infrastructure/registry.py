"""
Descriptor registry for pbdecode.

Loads a serialized FileDescriptorSet (``protoc --descriptor_set_out``) and
exposes message types by fully qualified name. Each registry owns its own
descriptor pool backed by a descriptor database, so files are only built
into descriptors when a type is first resolved and independent registries
never share state.

Only the first file of a descriptor set is registered. Its imports are not
loaded; a message that references a type from an unregistered file fails
when it is resolved.
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Dict, Iterable, Iterator, List, Type

from google.protobuf import descriptor_database, descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.descriptor import Descriptor
from google.protobuf.message import DecodeError as ProtoDecodeError
from google.protobuf.message import Message

from pbdecode.domain.errors import SchemaError
from pbdecode.utils.logging import get_logger

log = get_logger(__name__)


def _qualify(package: str, name: str) -> str:
    return f"{package}.{name}" if package else name


def _walk_messages(
    prefix: str, messages: Iterable[descriptor_pb2.DescriptorProto]
) -> Iterator[str]:
    for message in messages:
        full_name = _qualify(prefix, message.name)
        yield full_name
        yield from _walk_messages(full_name, message.nested_type)


def _top_level_symbols(file_proto: descriptor_pb2.FileDescriptorProto) -> List[str]:
    package = file_proto.package
    names = [m.name for m in file_proto.message_type]
    names += [e.name for e in file_proto.enum_type]
    names += [s.name for s in file_proto.service]
    names += [x.name for x in file_proto.extension]
    return [_qualify(package, name) for name in names]


class DescriptorRegistry:
    """
    Queryable message types loaded from a descriptor set.

    Populate once with ``load`` (or ``load_bytes``) before any decoding starts;
    afterwards the registry is only read, and reads are safe from any thread.
    """

    def __init__(self) -> None:
        self._database = descriptor_database.DescriptorDatabase()
        self._pool = descriptor_pool.DescriptorPool(descriptor_db=self._database)
        self._files: Dict[str, descriptor_pb2.FileDescriptorProto] = {}
        self._symbols: Dict[str, str] = {}
        self._classes: Dict[str, Type[Message]] = {}
        self._lock = threading.Lock()

    @property
    def files(self) -> List[str]:
        """Names of registered files, in registration order."""
        return list(self._files)

    def load(self, path: Path | str) -> None:
        """
        Read a descriptor set from disk and register its first file.

        Raises
        ------
        SchemaError
            If the file is unreadable, not a descriptor set, empty, or its
            first file conflicts with an already registered name.
        """
        path = Path(path)
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise SchemaError(
                f"Cannot read descriptor set '{path}'", cause=exc, context={"path": str(path)}
            ) from exc
        self.load_bytes(data, source=str(path))

    def load_bytes(self, data: bytes, source: str = "<bytes>") -> None:
        """Register the first file of a serialized descriptor set."""
        descriptor_set = descriptor_pb2.FileDescriptorSet()
        try:
            descriptor_set.ParseFromString(data)
        except ProtoDecodeError as exc:
            raise SchemaError(
                f"'{source}' is not a valid descriptor set", cause=exc, context={"source": source}
            ) from exc
        if not descriptor_set.file:
            raise SchemaError(
                f"Descriptor set '{source}' contains no files", context={"source": source}
            )

        file_proto = descriptor_set.file[0]
        self._register(file_proto, source)
        log.info(
            "Descriptor set loaded",
            extra={
                "source": source,
                "file": file_proto.name,
                "package": file_proto.package,
                "messages": len(file_proto.message_type),
                "ignored_files": len(descriptor_set.file) - 1,
            },
        )

    def _register(self, file_proto: descriptor_pb2.FileDescriptorProto, source: str) -> None:
        with self._lock:
            if file_proto.name in self._files:
                raise SchemaError(
                    f"File '{file_proto.name}' is already registered",
                    context={"source": source, "file": file_proto.name},
                )
            symbols = _top_level_symbols(file_proto)
            for symbol in symbols:
                if symbol in self._symbols:
                    raise SchemaError(
                        f"Symbol '{symbol}' from '{file_proto.name}' conflicts with "
                        f"'{self._symbols[symbol]}'",
                        context={"source": source, "symbol": symbol},
                    )
            try:
                self._database.Add(file_proto)
            except descriptor_database.Error as exc:
                raise SchemaError(
                    f"Cannot register '{file_proto.name}'",
                    cause=exc,
                    context={"source": source},
                ) from exc

            copy = descriptor_pb2.FileDescriptorProto()
            copy.CopyFrom(file_proto)
            self._files[file_proto.name] = copy
            for symbol in symbols:
                self._symbols[symbol] = file_proto.name

    def resolve(self, full_name: str) -> Descriptor:
        """
        Look up a message type by fully qualified name.

        The owning file is built on first lookup; a file that imports an
        unregistered file fails here.
        """
        with self._lock:
            try:
                return self._pool.FindMessageTypeByName(full_name)
            except KeyError as exc:
                raise SchemaError(
                    f"Unknown message type '{full_name}'",
                    cause=exc,
                    context={"message": full_name},
                ) from exc
            except (TypeError, ValueError) as exc:
                raise SchemaError(
                    f"Cannot build message type '{full_name}'",
                    cause=exc,
                    context={"message": full_name},
                ) from exc

    def message_class(self, descriptor: Descriptor) -> Type[Message]:
        """Concrete message class for a resolved descriptor (cached)."""
        with self._lock:
            cls = self._classes.get(descriptor.full_name)
            if cls is None:
                cls = message_factory.GetMessageClass(descriptor)
                self._classes[descriptor.full_name] = cls
            return cls

    def message_names(self) -> List[str]:
        """Sorted fully qualified names of every message in registered files."""
        names: List[str] = []
        for file_proto in self._files.values():
            names.extend(_walk_messages(file_proto.package, file_proto.message_type))
        return sorted(names)


__all__ = ["DescriptorRegistry"]
