"""
Account registry: id → keypair mapping, optionally persisted to a flat file.

Design
------
- Readers never block: the registry keeps an immutable snapshot (a tuple of
  `Account` records plus an index) and swaps it atomically on write.
- Writers are serialized by a thread lock plus an exclusive advisory lock on
  a sidecar `<file>.lock`, held across read-merge-write. Each append merges
  into the records currently on disk, so handles in other threads or
  processes cannot lose each other's accounts.
- The file is rewritten atomically (tmp file + replace) on each append.
- A missing file is an empty registry, not an error.

File format (compatible with existing `accounts.json` files)
------------------------------------------------------------
{
  "accounts": [
    {"id": "0.0.1001", "privateKey": "<hex>", "publicKey": "<hex>"},
    ...
  ]
}
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple, Union

LOCK_EXT = ".lock"

from ..errors import RegistryError
from ..types.core import AccountId, AccountLike
from .keys import PrivateKey, PublicKey

log = logging.getLogger(__name__)

__all__ = ["Account", "AccountRegistry"]


@dataclass(frozen=True)
class Account:
    id: AccountId
    private_key: PrivateKey
    public_key: PublicKey

    @classmethod
    def from_private_key(cls, account_id: AccountLike, key: Union[PrivateKey, str]) -> "Account":
        sk = key if isinstance(key, PrivateKey) else PrivateKey.from_string(key)
        return cls(id=AccountId.parse(account_id), private_key=sk, public_key=sk.public_key)

    @classmethod
    def from_record(cls, rec: Mapping[str, Any]) -> "Account":
        try:
            sk = PrivateKey.from_string(str(rec["privateKey"]))
            acc = cls(id=AccountId.parse(str(rec["id"])), private_key=sk, public_key=sk.public_key)
        except (KeyError, ValueError, TypeError) as e:
            raise RegistryError(f"malformed account record: {e}") from e
        if rec.get("publicKey") and PublicKey.from_string(str(rec["publicKey"])) != acc.public_key:
            raise RegistryError(f"publicKey does not match privateKey for account {acc.id}")
        return acc

    def to_record(self) -> Dict[str, str]:
        return {
            "id": str(self.id),
            "privateKey": self.private_key.to_string_raw(),
            "publicKey": self.public_key.to_string_raw(),
        }


def _lock_fd(fd: int) -> None:
    """Block until an exclusive lock on `fd` is held."""
    if os.name == "nt":
        import msvcrt
        msvcrt.locking(fd, msvcrt.LK_LOCK, 1)
    else:
        import fcntl
        fcntl.flock(fd, fcntl.LOCK_EX)


def _unlock_fd(fd: int) -> None:
    if os.name == "nt":
        import msvcrt
        os.lseek(fd, 0, os.SEEK_SET)
        msvcrt.locking(fd, msvcrt.LK_UNLCK, 1)
    else:
        import fcntl
        fcntl.flock(fd, fcntl.LOCK_UN)


_Snapshot = Tuple[Tuple[Account, ...], Dict[AccountId, Account]]


class AccountRegistry:
    """
    In-memory registry of signing-capable accounts, optionally file-backed.

        reg = AccountRegistry.open("accounts.json")
        reg.append(Account.from_private_key("0.0.1001", key))
        reg.get("0.0.1001").private_key
    """

    def __init__(self, accounts: Iterable[Account] = (), *, path: Optional[Union[str, os.PathLike[str]]] = None) -> None:
        self._path: Optional[Path] = Path(path) if path is not None else None
        self._write_lock = threading.Lock()
        self._snapshot: _Snapshot = self._build(tuple(accounts))

    # ---- Constructors ----

    @classmethod
    def open(cls, path: Union[str, os.PathLike[str]]) -> "AccountRegistry":
        """Load the registry file at `path` (empty if it does not exist)."""
        reg = cls(path=path)
        reg._snapshot = cls._build(tuple(reg.load_all()))
        return reg

    # ---- Reads (lock-free) ----

    def __len__(self) -> int:
        return len(self._snapshot[0])

    def __iter__(self) -> Iterator[Account]:
        return iter(self._snapshot[0])

    def __contains__(self, account_id: object) -> bool:
        try:
            return AccountId.parse(account_id) in self._snapshot[1]  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return False

    @property
    def path(self) -> Optional[Path]:
        return self._path

    def accounts(self) -> Tuple[Account, ...]:
        return self._snapshot[0]

    def get(self, account_id: AccountLike) -> Optional[Account]:
        return self._snapshot[1].get(AccountId.parse(account_id))

    def require(self, account_id: AccountLike) -> Account:
        acc = self.get(account_id)
        if acc is None:
            raise RegistryError(f"account {account_id} is not in the registry", path=self._path_str())
        return acc

    def key_for(self, account_id: AccountLike) -> Optional[PrivateKey]:
        acc = self.get(account_id)
        return acc.private_key if acc is not None else None

    # ---- Persistence ----

    def load_all(self) -> list[Account]:
        """Read every record from the backing file (fresh read, no caching)."""
        if self._path is None:
            return list(self._snapshot[0])
        try:
            with open(self._path, "rb") as f:
                data = json.loads(f.read().decode("utf-8"))
        except FileNotFoundError:
            return []
        except (OSError, ValueError) as e:
            raise RegistryError(f"failed to read registry: {e}", path=self._path_str()) from e
        if not isinstance(data, dict) or not isinstance(data.get("accounts", []), list):
            raise RegistryError("registry file must contain an 'accounts' list", path=self._path_str())
        return [Account.from_record(rec) for rec in data.get("accounts", [])]

    def append(self, account: Account) -> None:
        """
        Add an account and persist. Appending an id that already exists
        replaces that record.
        """
        with self._write_lock, self._file_lock():
            current = [a for a in self.load_all() if a.id != account.id]
            current.append(account)
            accounts = tuple(current)
            if self._path is not None:
                self._atomic_write(accounts)
            self._snapshot = self._build(accounts)
        log.info("registry: added account %s (total=%d)", account.id, len(accounts))

    # ---- internals ----

    @staticmethod
    def _build(accounts: Tuple[Account, ...]) -> _Snapshot:
        return accounts, {a.id: a for a in accounts}

    def _path_str(self) -> Optional[str]:
        return str(self._path) if self._path is not None else None

    @contextmanager
    def _file_lock(self) -> Iterator[None]:
        """Exclusive advisory lock on `<path>.lock`; no-op for in-memory registries."""
        if self._path is None:
            yield
            return
        lock_path = self._path.with_name(self._path.name + LOCK_EXT)
        try:
            lock_path.parent.mkdir(parents=True, exist_ok=True)
            fd = os.open(lock_path, os.O_RDWR | os.O_CREAT, 0o600)
        except OSError as e:
            raise RegistryError(f"failed to open registry lock: {e}", path=self._path_str()) from e
        try:
            _lock_fd(fd)
        except OSError as e:
            os.close(fd)
            raise RegistryError(f"failed to lock registry: {e}", path=self._path_str()) from e
        try:
            yield
        finally:
            _unlock_fd(fd)
            os.close(fd)

    def _atomic_write(self, accounts: Tuple[Account, ...]) -> None:
        assert self._path is not None
        payload = {"accounts": [a.to_record() for a in accounts]}
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            data = json.dumps(payload, indent=2).encode("utf-8")
            with tempfile.NamedTemporaryFile("wb", delete=False, dir=str(self._path.parent)) as tmp:
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_name = tmp.name
            os.replace(tmp_name, self._path)
            if os.name == "posix":
                os.chmod(self._path, 0o600)
        except OSError as e:
            raise RegistryError(f"failed to write registry: {e}", path=self._path_str()) from e
