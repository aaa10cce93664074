"""
Network context: the explicit value passed into bind/submit operations.

A `NetworkContext` bundles the network collaborator with everything the
pipeline needs to bind and sign for it: the target node set, the operator
(default payer) and the account registry used to resolve signing keys, plus
fee, validity-window and polling defaults. It is immutable; derive variants
with `with_operator` / `with_overrides`. Several independently configured
contexts can coexist in one process (e.g. one per test).
"""

from __future__ import annotations

import dataclasses
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional, Tuple

from .types.core import AccountId, AccountLike
from .wallet.keys import KeyLike, PrivateKey, coerce_private_key
from .wallet.registry import AccountRegistry

if TYPE_CHECKING:  # pragma: no cover
    from .config import LedgerFlowConfig
    from .network.base import Network

DEFAULT_NODES: Tuple[AccountId, ...] = (AccountId(0, 0, 3),)


@dataclass(frozen=True)
class NetworkContext:
    network: "Network"
    name: str = "custom"
    node_account_ids: Tuple[AccountId, ...] = DEFAULT_NODES
    operator_id: Optional[AccountId] = None
    operator_key: Optional[PrivateKey] = None
    registry: AccountRegistry = field(default_factory=AccountRegistry)

    # bind defaults
    default_max_fee: int = 200_000_000
    valid_duration: int = 120
    max_nodes_per_tx: int = 3

    # receipt polling
    receipt_timeout: float = 30.0
    poll_interval: float = 0.25
    max_poll_interval: float = 2.0
    poll_backoff: float = 1.5

    # transient-failure retries
    max_retries: int = 4
    backoff_base: float = 0.25
    backoff_max: float = 4.0

    clock: Callable[[], float] = time.time

    def __post_init__(self) -> None:
        if not self.node_account_ids:
            raise ValueError("node_account_ids must not be empty")
        if self.valid_duration <= 0:
            raise ValueError("valid_duration must be positive")
        if self.max_nodes_per_tx <= 0:
            raise ValueError("max_nodes_per_tx must be positive")

    @classmethod
    def from_config(
        cls,
        cfg: "LedgerFlowConfig",
        network: Optional["Network"] = None,
        *,
        registry: Optional[AccountRegistry] = None,
    ) -> "NetworkContext":
        """Build a context from configuration; opens the network client unless one is given."""
        if network is None:
            from .network import open_network

            network = open_network(cfg)
        bootstrap = getattr(network, "bootstrap_operator", None)
        if registry is None:
            # simulated ledgers do not outlive the process, so neither do their accounts
            persist = cfg.accounts_file and bootstrap is None
            registry = AccountRegistry.open(cfg.accounts_file) if persist else AccountRegistry()

        operator_id = AccountId.parse(cfg.operator_id) if cfg.operator_id else None
        operator_key = PrivateKey.from_string(cfg.operator_key) if cfg.operator_key else None
        if bootstrap is not None and operator_id is None:
            # simulated ledger: mint a funded operator
            operator_id, operator_key = bootstrap(operator_key)
        return cls(
            network=network,
            name=cfg.network,
            node_account_ids=tuple(AccountId.parse(n) for n in cfg.node_account_ids),
            operator_id=operator_id,
            operator_key=operator_key,
            registry=registry,
            default_max_fee=cfg.max_fee,
            valid_duration=cfg.valid_duration,
            receipt_timeout=cfg.receipt_timeout,
            poll_interval=cfg.poll_interval,
            max_poll_interval=cfg.max_poll_interval,
            max_retries=cfg.max_retries,
            backoff_base=cfg.backoff_base,
            backoff_max=cfg.backoff_max,
        )

    def with_operator(self, account_id: AccountLike, key: KeyLike) -> "NetworkContext":
        return dataclasses.replace(
            self, operator_id=AccountId.parse(account_id), operator_key=coerce_private_key(key)
        )

    def with_overrides(self, **overrides: Any) -> "NetworkContext":
        return dataclasses.replace(self, **overrides)

    def key_for(self, account_id: AccountLike) -> Optional[PrivateKey]:
        """Resolve a local signing key: operator first, then the registry."""
        acct = AccountId.parse(account_id)
        if self.operator_id is not None and acct == self.operator_id and self.operator_key is not None:
            return self.operator_key
        return self.registry.key_for(acct)

    def public_key_for(self, account_id: AccountLike) -> Optional[bytes]:
        key = self.key_for(account_id)
        return key.public_key.raw if key is not None else None


__all__ = ["NetworkContext", "DEFAULT_NODES"]
