"""
Byte normalization and dynamic decoding for pbdecode.

Turns hex payload text into raw bytes and interprets those bytes against a
message type resolved at runtime, producing the tagged DecodedValue variant
from ``pbdecode.domain.models``.

Usage:
    from pbdecode.decoder import decode_payload

    value = decode_payload("0x0a05416c696365101e", "pkg.Person", registry)
    value.to_native()  # {"name": "Alice", "age": 30}
"""

from __future__ import annotations

import string
from typing import Any, Dict, Union

from google.protobuf.descriptor import Descriptor, FieldDescriptor
from google.protobuf.internal import type_checkers
from google.protobuf.message import DecodeError as ProtoDecodeError
from google.protobuf.message import Message

from pbdecode.domain.errors import DecodeError
from pbdecode.domain.models import DecodedValue, ListValue, MessageValue, ScalarValue
from pbdecode.infrastructure.registry import DescriptorRegistry

RADIX_MARKERS = ("0x", "0X")
_HEX_DIGITS = frozenset(string.hexdigits)

# FieldDescriptor.TYPE_* -> kind name used by ScalarValue
_KIND_NAMES: Dict[int, str] = {
    FieldDescriptor.TYPE_DOUBLE: "double",
    FieldDescriptor.TYPE_FLOAT: "float",
    FieldDescriptor.TYPE_INT64: "int64",
    FieldDescriptor.TYPE_UINT64: "uint64",
    FieldDescriptor.TYPE_INT32: "int32",
    FieldDescriptor.TYPE_FIXED64: "fixed64",
    FieldDescriptor.TYPE_FIXED32: "fixed32",
    FieldDescriptor.TYPE_BOOL: "bool",
    FieldDescriptor.TYPE_STRING: "string",
    FieldDescriptor.TYPE_GROUP: "group",
    FieldDescriptor.TYPE_MESSAGE: "message",
    FieldDescriptor.TYPE_BYTES: "bytes",
    FieldDescriptor.TYPE_UINT32: "uint32",
    FieldDescriptor.TYPE_ENUM: "enum",
    FieldDescriptor.TYPE_SFIXED32: "sfixed32",
    FieldDescriptor.TYPE_SFIXED64: "sfixed64",
    FieldDescriptor.TYPE_SINT32: "sint32",
    FieldDescriptor.TYPE_SINT64: "sint64",
}


def normalize(text: Union[str, bytes]) -> bytes:
    """
    Convert hex payload text, optionally prefixed with ``0x``/``0X``, to bytes.

    Raises
    ------
    DecodeError
        If the text (after the marker) has odd length or contains a
        non-hex character. The error context carries ``length`` and, for a
        bad digit, its ``position`` in the original text.
    """
    if isinstance(text, bytes):
        try:
            text = text.decode("ascii")
        except UnicodeDecodeError as exc:
            raise DecodeError(
                f"Payload text is not ASCII (pos: {exc.start})",
                cause=exc,
                context={"position": exc.start},
            ) from exc

    offset = 2 if text.startswith(RADIX_MARKERS) else 0
    digits = text[offset:]

    if len(digits) % 2:
        raise DecodeError(
            f"Hex payload has odd length {len(digits)} (text length: {len(text)})",
            context={"length": len(digits), "position": len(text)},
        )
    for index, char in enumerate(digits):
        if char not in _HEX_DIGITS:
            raise DecodeError(
                f"Invalid hex character {char!r} at pos: {index + offset}",
                context={"length": len(digits), "position": index + offset},
            )
    return bytes.fromhex(digits)


def _scalar(field: FieldDescriptor, value: Any) -> ScalarValue:
    if field.type == FieldDescriptor.TYPE_FLOAT:
        # shortest text that round-trips through 32 bits: 1.1, not 1.100000023841858
        value = type_checkers.ToShortestFloat(value)
    elif field.type == FieldDescriptor.TYPE_STRING and isinstance(value, bytes):
        # proto2 strings are not UTF-8 validated on the wire
        value = value.decode("utf-8", errors="replace")
    return ScalarValue(kind=_KIND_NAMES.get(field.type, "unknown"), value=value)


def _is_map(field: FieldDescriptor) -> bool:
    message_type = field.message_type
    return (
        message_type is not None
        and message_type.GetOptions().map_entry
        and field.is_repeated
    )


def _element(field: FieldDescriptor, value: Any) -> DecodedValue:
    if field.type in (FieldDescriptor.TYPE_MESSAGE, FieldDescriptor.TYPE_GROUP):
        return flatten(value)
    return _scalar(field, value)


def _map_value(field: FieldDescriptor, container: Any) -> MessageValue:
    value_field = field.message_type.fields_by_name["value"]
    entries: Dict[str, DecodedValue] = {}
    for key in container:
        # JSON object keys are text; bools follow JSON spelling
        key_text = str(key).lower() if isinstance(key, bool) else str(key)
        entries[key_text] = _element(value_field, container[key])
    return MessageValue(type_name=field.message_type.full_name, fields=entries)


def flatten(message: Message) -> MessageValue:
    """
    Convert a parsed message into a MessageValue.

    Fields are visited in declaration order and only those present in the
    message are emitted; repeated fields keep wire order.
    """
    descriptor = message.DESCRIPTOR
    present = {field.number for field, _ in message.ListFields()}

    fields: Dict[str, DecodedValue] = {}
    for field in descriptor.fields:
        if field.number not in present:
            continue
        raw = getattr(message, field.name)
        if _is_map(field):
            fields[field.name] = _map_value(field, raw)
        elif field.is_repeated:
            fields[field.name] = ListValue(items=tuple(_element(field, item) for item in raw))
        else:
            fields[field.name] = _element(field, raw)
    return MessageValue(type_name=descriptor.full_name, fields=fields)


def decode(data: bytes, descriptor: Descriptor, registry: DescriptorRegistry) -> MessageValue:
    """
    Parse ``data`` as the wire encoding of ``descriptor`` and flatten it.

    Raises
    ------
    DecodeError
        If the bytes are not a valid encoding for the type (truncated,
        malformed varint, bad wire type, missing required field, ...).
    """
    message = registry.message_class(descriptor)()
    try:
        message.ParseFromString(data)
    except ProtoDecodeError as exc:
        raise DecodeError(
            f"Invalid wire data for '{descriptor.full_name}'",
            cause=exc,
            context={"message": descriptor.full_name, "length": len(data)},
        ) from exc
    return flatten(message)


def decode_payload(
    text: Union[str, bytes], message_name: str, registry: DescriptorRegistry
) -> MessageValue:
    """Normalize hex text and decode it as ``message_name``."""
    descriptor = registry.resolve(message_name)
    return decode(normalize(text), descriptor, registry)


__all__ = ["RADIX_MARKERS", "decode", "decode_payload", "flatten", "normalize"]
