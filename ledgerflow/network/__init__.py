"""
Network collaborators: the `Network` protocol and its implementations.

    open_network(cfg)   JsonRpcNetwork for remote/local gateways,
                        InMemoryLedger for cfg.network == "memory"
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from ..errors import ConfigError
from .base import Network, OnMessage, Subscription
from .jsonrpc import JsonRpcNetwork
from .memory import InMemoryLedger, ManualClock

if TYPE_CHECKING:  # pragma: no cover
    from ..config import LedgerFlowConfig


def open_network(cfg: "LedgerFlowConfig") -> Network:
    if cfg.network == "memory":
        return InMemoryLedger(node_ids=cfg.node_account_ids)
    if not cfg.rpc_url:
        raise ConfigError(f"network {cfg.network!r} needs an rpc url (LEDGERFLOW_RPC_URL)")
    return JsonRpcNetwork(cfg.rpc_url, cfg.ws_url, timeout=cfg.request_timeout, headers=cfg.http_headers())


__all__ = [
    "Network",
    "Subscription",
    "OnMessage",
    "JsonRpcNetwork",
    "InMemoryLedger",
    "ManualClock",
    "open_network",
]
