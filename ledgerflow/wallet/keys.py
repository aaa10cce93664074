"""
ledgerflow.wallet.keys
======================

Ed25519 key material for signing ledger transactions.

This module is a thin, well-typed facade over `cryptography`'s Ed25519
primitives. Key generation and signing are delegated entirely to the library;
what lives here is the conversion between the textual forms that appear in
account registry files / environment variables and the library objects.

Accepted private key encodings
------------------------------
- raw 32-byte seed as hex (optionally 0x-prefixed), e.g. registry files
- DER (PKCS#8) hex, as exported by most ledger tooling ("302e0201...")

Public keys are always handled as raw 32-byte values; that is also the key
used for the signature map of a `SignedTransaction`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Union

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import (
    Ed25519PrivateKey, Ed25519PublicKey)

from ..utils.bytes import BytesLike, ensure_bytes, to_hex

__all__ = [
    "PrivateKey",
    "PublicKey",
    "KeyLike",
    "coerce_private_key",
    "coerce_public_key",
]

_ED25519_DER_PREFIX = bytes.fromhex("302e020100300506032b657004220420")
_ED25519_PUB_DER_PREFIX = bytes.fromhex("302a300506032b6570032100")


@dataclass(frozen=True)
class PublicKey:
    """Raw Ed25519 public key (32 bytes)."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != 32:
            raise ValueError(f"Ed25519 public key must be 32 bytes, got {len(self.raw)}")

    @classmethod
    def from_bytes(cls, data: BytesLike) -> "PublicKey":
        b = bytes(data)
        if len(b) == len(_ED25519_PUB_DER_PREFIX) + 32 and b.startswith(_ED25519_PUB_DER_PREFIX):
            b = b[len(_ED25519_PUB_DER_PREFIX):]
        return cls(b)

    @classmethod
    def from_string(cls, text: str) -> "PublicKey":
        return cls.from_bytes(ensure_bytes(text))

    def to_bytes(self) -> bytes:
        return self.raw

    def to_string_raw(self) -> str:
        return to_hex(self.raw)

    def verify(self, message: bytes, signature: bytes) -> bool:
        try:
            Ed25519PublicKey.from_public_bytes(self.raw).verify(bytes(signature), bytes(message))
        except InvalidSignature:
            return False
        return True

    def __str__(self) -> str:
        return self.to_string_raw()


class PrivateKey:
    """
    An Ed25519 signing key.

    Create instances via:
        - PrivateKey.generate()
        - PrivateKey.from_string(hex)   (raw seed or DER)
        - PrivateKey.from_seed(bytes32)
    """

    __slots__ = ("_sk", "_public")

    def __init__(self, sk: Ed25519PrivateKey) -> None:
        self._sk = sk
        pub = sk.public_key().public_bytes(
            encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw
        )
        self._public = PublicKey(pub)

    # ---- Constructors ----

    @classmethod
    def generate(cls) -> "PrivateKey":
        return cls(Ed25519PrivateKey.generate())

    @classmethod
    def from_seed(cls, seed: BytesLike) -> "PrivateKey":
        """Deterministic key from a 32-byte seed (the raw private key bytes)."""
        b = bytes(seed)
        if len(b) != 32:
            raise ValueError(f"Ed25519 seed must be 32 bytes, got {len(b)}")
        return cls(Ed25519PrivateKey.from_private_bytes(b))

    @classmethod
    def from_string(cls, text: str) -> "PrivateKey":
        b = ensure_bytes(text)
        if len(b) == len(_ED25519_DER_PREFIX) + 32 and b.startswith(_ED25519_DER_PREFIX):
            b = b[len(_ED25519_DER_PREFIX):]
        return cls.from_seed(b)

    # ---- Properties ----

    @property
    def public_key(self) -> PublicKey:
        return self._public

    def to_bytes_raw(self) -> bytes:
        return self._sk.private_bytes(
            encoding=serialization.Encoding.Raw,
            format=serialization.PrivateFormat.Raw,
            encryption_algorithm=serialization.NoEncryption(),
        )

    def to_string_raw(self) -> str:
        return to_hex(self.to_bytes_raw())

    def to_string_der(self) -> str:
        return to_hex(_ED25519_DER_PREFIX + self.to_bytes_raw())

    # ---- Operations ----

    def sign(self, message: bytes) -> bytes:
        """Sign the exact byte string (e.g. canonical body bytes of a transaction)."""
        return self._sk.sign(bytes(message))

    def verify(self, message: bytes, signature: bytes) -> bool:
        return self._public.verify(message, signature)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.to_bytes_raw() == other.to_bytes_raw()

    def __hash__(self) -> int:
        return hash(self._public)

    def __repr__(self) -> str:
        # Never render secret material.
        return f"PrivateKey(public={self._public.to_string_raw()[:16]}...)"


KeyLike = Union[PrivateKey, str]


def coerce_private_key(key: KeyLike) -> PrivateKey:
    if isinstance(key, PrivateKey):
        return key
    if isinstance(key, str):
        return PrivateKey.from_string(key)
    raise TypeError(f"expected PrivateKey or hex string, got {type(key).__name__}")


def coerce_public_key(key: Optional[Union[PublicKey, PrivateKey, str, bytes]]) -> Optional[PublicKey]:
    if key is None or isinstance(key, PublicKey):
        return key
    if isinstance(key, PrivateKey):
        return key.public_key
    if isinstance(key, (bytes, bytearray)):
        return PublicKey.from_bytes(key)
    if isinstance(key, str):
        return PublicKey.from_string(key)
    raise TypeError(f"expected a public key, got {type(key).__name__}")
