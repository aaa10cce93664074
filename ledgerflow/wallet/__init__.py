"""
ledgerflow.wallet
=================

Convenience exports for wallet helpers:

- Ed25519 key material (generate/import/sign/verify).
- Account registry (id → keypair, file-backed, concurrent-reader safe).
"""

from .keys import KeyLike, PrivateKey, PublicKey
from .registry import Account, AccountRegistry

__all__ = [
    "KeyLike",
    "PrivateKey",
    "PublicKey",
    "Account",
    "AccountRegistry",
]
