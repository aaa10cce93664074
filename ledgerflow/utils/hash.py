from __future__ import annotations

import hashlib

from .bytes import BytesLike, ensure_bytes, to_hex


# Transaction hashes are SHA-384 over the serialized signed envelope.

def sha384(data: BytesLike) -> bytes:
    """Return SHA-384 digest of *data*."""
    h = hashlib.sha384()
    h.update(ensure_bytes(data))
    return h.digest()


def sha384_hex(data: BytesLike, *, prefix: bool = False) -> str:
    return to_hex(sha384(data), prefix=prefix)


__all__ = ["sha384", "sha384_hex"]
