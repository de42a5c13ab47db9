"""
Domain models for pbdecode.

Defines the unit of pipeline work (Record) and the tagged variant produced by
the dynamic decoder (ScalarValue, ListValue, MessageValue). Decoded values are
immutable; a Record is mutable because exactly one of its fields is replaced
in place by the decoded payload.
"""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple, Union

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class ScalarValue:
    """A single protobuf scalar; ``kind`` is the field type name (e.g. ``int32``)."""

    kind: str
    value: Any

    def to_native(self) -> Any:
        if self.kind == "bytes":
            return base64.b64encode(self.value).decode("ascii")
        return self.value


@dataclass(frozen=True)
class ListValue:
    """Elements of a repeated field, in wire order."""

    items: Tuple["DecodedValue", ...] = ()

    def to_native(self) -> list:
        return [item.to_native() for item in self.items]

    def __len__(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class MessageValue:
    """Present fields of a message keyed by field name, in declaration order."""

    type_name: str
    fields: Dict[str, "DecodedValue"] = field(default_factory=dict)

    def to_native(self) -> Dict[str, Any]:
        return {name: value.to_native() for name, value in self.fields.items()}

    def __contains__(self, name: object) -> bool:
        return name in self.fields

    def __getitem__(self, name: str) -> "DecodedValue":
        return self.fields[name]


DecodedValue = Union[ScalarValue, ListValue, MessageValue]


def to_native(value: Any) -> Any:
    """Convert a decoded value to plain Python data; other values pass through."""
    if isinstance(value, (ScalarValue, ListValue, MessageValue)):
        return value.to_native()
    return value


class Record(BaseModel):
    """
    One row of tabular input bound to the configured field names.
    """

    line: int = Field(..., ge=1, description="1-based position in the input stream.")
    data: Dict[str, Any] = Field(
        ..., description="Configured field name -> column text (or decoded payload)."
    )

    model_config = {
        "frozen": False,
        "arbitrary_types_allowed": True,
    }

    def to_mapping(self) -> Dict[str, Any]:
        """Plain mapping ready for a Marshaler, preserving field order."""
        return {name: to_native(value) for name, value in self.data.items()}


__all__ = [
    "DecodedValue",
    "ListValue",
    "MessageValue",
    "Record",
    "ScalarValue",
    "to_native",
]
