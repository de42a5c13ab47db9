from __future__ import annotations

import json
from typing import Any, Mapping

from pbdecode.domain.errors import MarshalError
from pbdecode.domain.models import to_native
from pbdecode.sinks.abstract import AbstractMarshaler


class JsonMarshaler(AbstractMarshaler):
    """
    Compact single-line JSON, keys in field order.

    Decoded values are converted with ``to_native`` so a Record's fields can be
    passed as-is. NaN and infinities are rejected since they are not JSON.
    """

    name: str = "json"

    def marshal(self, value: Mapping[str, Any]) -> bytes:
        try:
            text = json.dumps(
                {key: to_native(item) for key, item in value.items()},
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
            )
            # UnicodeEncodeError (lone surrogates) is a ValueError
            return text.encode("utf-8")
        except (TypeError, ValueError) as exc:
            raise MarshalError("Cannot encode record as JSON", cause=exc) from exc


__all__ = ["JsonMarshaler"]
