"""Binary encoding of attribute maps.

Attributes travel as one msgpack map per group, stored in the object hash:
``_ndata`` holds plain attributes, ``_sdata`` serial attributes, and ``_cas``
the version token guarding ``_sdata``.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import msgpack

NDATA = "_ndata"
SDATA = "_sdata"
CAS = "_cas"


def sanitize(attributes: Mapping[str, Any]) -> dict[str, Any]:
    """Drop null attributes; a null is never persisted."""
    return {k: v for k, v in attributes.items() if v is not None}


def pack(attributes: Mapping[str, Any]) -> bytes:
    return msgpack.packb(sanitize(attributes), use_bin_type=True)


def unpack(blob: bytes | None) -> dict[str, Any]:
    if not blob:
        return {}
    data = msgpack.unpackb(blob, raw=False)
    if not isinstance(data, dict):
        raise ValueError(f"Expected an encoded map, got {type(data).__name__}")
    return data


def text(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


def unpack_hash(
    raw: Mapping[Any, Any],
) -> tuple[dict[str, Any], dict[str, Any], int | None]:
    """Split an object hash into (attributes, serial attributes, cas token)."""
    fields = {text(k): v for k, v in raw.items()}
    attributes = unpack(fields.get(NDATA))
    serial = unpack(fields.get(SDATA))
    token = fields.get(CAS)
    return attributes, serial, int(text(token)) if token is not None else None
