"""
Deterministic (canonical) CBOR encoder/decoder.

Goals
-----
- Produce *deterministic* byte-for-byte CBOR for the subset of types we use in
  transaction envelopes: None, bool, int, bytes, str, list and str-keyed maps.
- Map keys are ordered per RFC 8949 deterministic encoding, so two parties that
  hold the same logical transaction always produce the same bytes. This is
  what makes out-of-band signing hand-offs verifiable.

We delegate to `cbor2` in canonical mode and only normalise the error types.

API
---
- dumps(obj) -> bytes
- loads(data: bytes|bytearray|memoryview) -> object
- CBOREncodeError / CBORDecodeError
"""

from __future__ import annotations

from typing import Any

import cbor2

from .bytes import BytesLike, ensure_bytes


class CBOREncodeError(ValueError):
    pass


class CBORDecodeError(ValueError):
    pass


def dumps(obj: Any) -> bytes:
    """Encode *obj* to deterministic CBOR bytes."""
    try:
        return cbor2.dumps(obj, canonical=True)
    except (cbor2.CBOREncodeError, TypeError, ValueError) as e:
        raise CBOREncodeError(str(e)) from e


def loads(data: BytesLike) -> Any:
    """Decode CBOR *data* (bytes-like) into Python objects."""
    buf = ensure_bytes(data)
    try:
        return cbor2.loads(buf)
    except (cbor2.CBORDecodeError, TypeError, ValueError, EOFError) as e:
        raise CBORDecodeError(str(e)) from e


__all__ = [
    "dumps",
    "loads",
    "CBOREncodeError",
    "CBORDecodeError",
]
