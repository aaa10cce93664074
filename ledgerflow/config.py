"""
ledgerflow configuration: network endpoints, operator, fees, polling and retries.

- Node sets per named network (testnet, previewnet, mainnet, local, memory).
  Remote networks have no built-in gateway: set LEDGERFLOW_RPC_URL (and
  LEDGERFLOW_WS_URL for topic subscriptions).
- Overrides via environment variables (LEDGERFLOW_*). The operator may also be
  given as MY_ACCOUNT_ID / MY_PRIVATE_KEY, the names used by existing
  account/funding scripts.
- No process-wide default instance: build one and hand it to
  `NetworkContext.from_config`.
"""

from __future__ import annotations

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .errors import ConfigError
from .version import __version__


@dataclass(frozen=True)
class NetworkPreset:
    rpc_url: Optional[str]
    ws_url: Optional[str]
    node_account_ids: Tuple[str, ...]


NETWORKS: Dict[str, NetworkPreset] = {
    "testnet": NetworkPreset(None, None, ("0.0.3", "0.0.4", "0.0.5", "0.0.6")),
    "previewnet": NetworkPreset(None, None, ("0.0.3", "0.0.4", "0.0.5")),
    "mainnet": NetworkPreset(None, None, ("0.0.3", "0.0.4", "0.0.5", "0.0.6", "0.0.7")),
    "local": NetworkPreset("http://127.0.0.1:50211/rpc", "ws://127.0.0.1:50211/ws", ("0.0.3",)),
    "memory": NetworkPreset(None, None, ("0.0.3",)),
}


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    v = os.getenv(name)
    return v if v not in (None, "") else default


def _ensure_scheme(url: Optional[str], allowed: tuple[str, ...]) -> Optional[str]:
    if not url:
        return url
    lower = url.lower()
    if not any(lower.startswith(f"{sch}://") for sch in allowed):
        raise ConfigError(f"URL must start with {allowed}, got: {url!r}")
    return url


def _num(name: str, raw: Optional[str], conv: Any, default: Any) -> Any:
    if raw is None:
        return default
    try:
        return conv(raw)
    except ValueError as e:
        raise ConfigError(f"{name}: invalid value {raw!r}") from e


def _nodes(raw: Optional[str], default: Tuple[str, ...]) -> Tuple[str, ...]:
    if raw is None:
        return default
    return tuple(n.strip() for n in raw.split(",") if n.strip())


@dataclass(slots=True, frozen=True)
class LedgerFlowConfig:
    network: str = "testnet"
    rpc_url: Optional[str] = NETWORKS["testnet"].rpc_url
    ws_url: Optional[str] = NETWORKS["testnet"].ws_url
    node_account_ids: Tuple[str, ...] = NETWORKS["testnet"].node_account_ids

    # Operator (default payer)
    operator_id: Optional[str] = None
    operator_key: Optional[str] = field(default=None, repr=False)

    # Transactions
    max_fee: int = 200_000_000
    valid_duration: int = 120

    # Receipts & retries
    receipt_timeout: float = 30.0
    poll_interval: float = 0.25
    max_poll_interval: float = 2.0
    max_retries: int = 4
    backoff_base: float = 0.25
    backoff_max: float = 4.0
    request_timeout: float = 10.0

    # Local state
    accounts_file: Optional[str] = "accounts.json"
    log_level: str = "INFO"
    log_format: Optional[str] = None

    user_agent: str = field(default_factory=lambda: f"ledgerflow-python/{__version__}")

    def __post_init__(self) -> None:
        if self.network not in NETWORKS and not self.rpc_url:
            raise ConfigError(f"unknown network {self.network!r} and no rpc_url given")
        _ensure_scheme(self.rpc_url, ("http", "https"))
        _ensure_scheme(self.ws_url, ("ws", "wss"))
        if not self.node_account_ids:
            raise ConfigError("node_account_ids must not be empty")
        if self.valid_duration <= 0:
            raise ConfigError("valid_duration must be positive")
        if self.max_fee < 0:
            raise ConfigError("max_fee must be non-negative")
        if self.max_retries < 0:
            raise ConfigError("max_retries must be non-negative")
        if (self.operator_id is None) != (self.operator_key is None):
            raise ConfigError("operator_id and operator_key must be set together")

    @classmethod
    def for_network(cls, name: str, **overrides: Any) -> "LedgerFlowConfig":
        preset = NETWORKS.get(name)
        if preset is None:
            raise ConfigError(f"unknown network {name!r} (known: {', '.join(sorted(NETWORKS))})")
        base = {"network": name, "rpc_url": preset.rpc_url, "ws_url": preset.ws_url,
                "node_account_ids": preset.node_account_ids}
        base.update(overrides)
        return cls(**base)

    @classmethod
    def from_env(cls, prefix: str = "LEDGERFLOW_") -> "LedgerFlowConfig":
        """
        Create config from environment variables:

        LEDGERFLOW_NETWORK            testnet|previewnet|mainnet|local|memory
        LEDGERFLOW_RPC_URL            (http/https) overrides the preset
        LEDGERFLOW_WS_URL             (ws/wss) overrides the preset
        LEDGERFLOW_NODE_ACCOUNT_IDS   comma separated, e.g. "0.0.3,0.0.4"
        LEDGERFLOW_OPERATOR_ID        (fallback: MY_ACCOUNT_ID)
        LEDGERFLOW_OPERATOR_KEY       (fallback: MY_PRIVATE_KEY)
        LEDGERFLOW_MAX_FEE            (int, smallest unit)
        LEDGERFLOW_VALID_DURATION     (int seconds)
        LEDGERFLOW_RECEIPT_TIMEOUT    (float seconds)
        LEDGERFLOW_POLL_INTERVAL      (float seconds)
        LEDGERFLOW_MAX_POLL_INTERVAL  (float seconds)
        LEDGERFLOW_MAX_RETRIES        (int)
        LEDGERFLOW_BACKOFF_BASE       (float seconds)
        LEDGERFLOW_BACKOFF_MAX        (float seconds)
        LEDGERFLOW_TIMEOUT            (float seconds, HTTP)
        LEDGERFLOW_ACCOUNTS_FILE      (path)
        LEDGERFLOW_LOG_LEVEL          (DEBUG|INFO|...)
        LEDGERFLOW_LOG_FORMAT         (json|text)
        """
        name = _env(f"{prefix}NETWORK", "testnet")
        assert name is not None
        preset = NETWORKS.get(name, NetworkPreset(None, None, ("0.0.3",)))
        d = cls.__dataclass_fields__

        return cls(
            network=name,
            rpc_url=_env(f"{prefix}RPC_URL", preset.rpc_url),
            ws_url=_env(f"{prefix}WS_URL", preset.ws_url),
            node_account_ids=_nodes(_env(f"{prefix}NODE_ACCOUNT_IDS"), preset.node_account_ids),
            operator_id=_env(f"{prefix}OPERATOR_ID", _env("MY_ACCOUNT_ID")),
            operator_key=_env(f"{prefix}OPERATOR_KEY", _env("MY_PRIVATE_KEY")),
            max_fee=_num("MAX_FEE", _env(f"{prefix}MAX_FEE"), int, d["max_fee"].default),
            valid_duration=_num("VALID_DURATION", _env(f"{prefix}VALID_DURATION"), int, d["valid_duration"].default),
            receipt_timeout=_num("RECEIPT_TIMEOUT", _env(f"{prefix}RECEIPT_TIMEOUT"), float,
                                 d["receipt_timeout"].default),
            poll_interval=_num("POLL_INTERVAL", _env(f"{prefix}POLL_INTERVAL"), float, d["poll_interval"].default),
            max_poll_interval=_num("MAX_POLL_INTERVAL", _env(f"{prefix}MAX_POLL_INTERVAL"), float,
                                   d["max_poll_interval"].default),
            max_retries=_num("MAX_RETRIES", _env(f"{prefix}MAX_RETRIES"), int, d["max_retries"].default),
            backoff_base=_num("BACKOFF_BASE", _env(f"{prefix}BACKOFF_BASE"), float, d["backoff_base"].default),
            backoff_max=_num("BACKOFF_MAX", _env(f"{prefix}BACKOFF_MAX"), float, d["backoff_max"].default),
            request_timeout=_num("TIMEOUT", _env(f"{prefix}TIMEOUT"), float, d["request_timeout"].default),
            accounts_file=_env(f"{prefix}ACCOUNTS_FILE", d["accounts_file"].default),
            log_level=_env(f"{prefix}LOG_LEVEL", "INFO") or "INFO",
            log_format=_env(f"{prefix}LOG_FORMAT"),
        )

    @classmethod
    def with_overrides(cls, base: Optional["LedgerFlowConfig"] = None, **overrides: Any) -> "LedgerFlowConfig":
        """
        Build from an existing config plus keyword overrides. `None` values are
        ignored; unknown keys raise ConfigError.
        """
        base = base or cls.from_env()
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(overrides) - known
        if unknown:
            raise ConfigError(f"unknown config keys: {', '.join(sorted(unknown))}")
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "network" in changes and changes["network"] != base.network and changes["network"] in NETWORKS:
            preset = NETWORKS[changes["network"]]
            changes.setdefault("rpc_url", preset.rpc_url)
            changes.setdefault("ws_url", preset.ws_url)
            changes.setdefault("node_account_ids", preset.node_account_ids)
        return dataclasses.replace(base, **changes)

    def http_headers(self) -> Dict[str, str]:
        return {"User-Agent": self.user_agent}

    def to_dict(self, *, redact: bool = True) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}
        out["node_account_ids"] = list(self.node_account_ids)
        if redact and self.operator_key:
            out["operator_key"] = "***"
        return out


__all__ = ["LedgerFlowConfig", "NetworkPreset", "NETWORKS"]
