"""
ledgerflow.utils
================

Small helpers shared across the package: hex/bytes coercion, deterministic
CBOR, hashing and retry/backoff.
"""

from .bytes import BytesLike, ensure_bytes, to_hex
from .cbor import CBORDecodeError, CBOREncodeError, dumps, loads
from .hash import sha384, sha384_hex
from .retry import RetryError, backoff_delay, retry_call

__all__ = [
    "BytesLike",
    "ensure_bytes",
    "to_hex",
    "dumps",
    "loads",
    "CBOREncodeError",
    "CBORDecodeError",
    "sha384",
    "sha384_hex",
    "RetryError",
    "backoff_delay",
    "retry_call",
]
