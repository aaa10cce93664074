"""
Transaction pipeline: build → bind → sign → submit → receipt.

    from ledgerflow.tx import build, bind, sign_all, execute

    draft = build.native_transfer("0.0.1001", "0.0.1002", 500)
    signed = sign_all(bind(draft, ctx), [ctx.key_for("0.0.1001")])
    receipt = execute(signed, ctx).raise_for_status()
"""

from . import build
from .encode import deserialize, serialize, tx_hash
from .envelope import BoundTransaction, SignedTransaction
from .freeze import bind
from .send import (PendingResult, await_receipt, await_receipt_async,
                   execute, execute_draft, get_receipt, require_outcome,
                   submit)
from .sign import add_signature, sign, sign_all

__all__ = [
    "build",
    "BoundTransaction",
    "SignedTransaction",
    "bind",
    "sign",
    "sign_all",
    "add_signature",
    "serialize",
    "deserialize",
    "tx_hash",
    "PendingResult",
    "submit",
    "get_receipt",
    "await_receipt",
    "await_receipt_async",
    "execute",
    "execute_draft",
    "require_outcome",
]
