"""
HTTP JSON-RPC client (sync, httpx).

- One attempt per call: retry policy belongs to the caller (the submission
  resolver retries transient failures with backoff, see `ledgerflow.tx.send`).
- Transport failures and throttling statuses are mapped onto JSON-RPC codes so
  callers only ever see `RpcError`:
    * timeouts / connection errors  → TRANSPORT (-32098)
    * HTTP 429                       → RATE_LIMITED (-32001)
    * HTTP 502/503/504               → NODE_BUSY (-32012)
- An `httpx` transport can be injected, which is how the tests stub a node
  (`httpx.MockTransport`).

Example:
    from ledgerflow.rpc.http import RpcClient
    with RpcClient("http://localhost:50211/rpc") as rpc:
        rec = rpc.request("ledger_getReceipt", {"transactionId": "0.0.2@1700000000.000000001"})
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Dict, Iterator, Mapping, Optional, Sequence, Union

import httpx

from ..errors import JsonRpcCode, RpcError, from_jsonrpc_error
from ..version import __version__

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[Sequence[Any], Mapping[str, Any], None]

_THROTTLE_STATUS = {429: JsonRpcCode.RATE_LIMITED, 502: JsonRpcCode.NODE_BUSY,
                    503: JsonRpcCode.NODE_BUSY, 504: JsonRpcCode.NODE_BUSY}


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class RpcClient:
    """Synchronous JSON-RPC 2.0 client over HTTP."""

    url: str
    timeout: float = 30.0
    headers: Optional[Mapping[str, str]] = None
    transport: Optional[httpx.BaseTransport] = None
    _ids: Iterator[int] = field(default_factory=lambda: count(start=_now_ms()))
    _client: httpx.Client = field(init=False, repr=False)

    def __post_init__(self) -> None:
        merged: Dict[str, str] = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"ledgerflow-python/{__version__}",
        }
        if self.headers:
            merged.update(dict(self.headers))
        self._client = httpx.Client(timeout=self.timeout, headers=merged, transport=self.transport)

    # --- context manager -------------------------------------------------

    def __enter__(self) -> "RpcClient":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    def close(self) -> None:
        self._client.close()

    # --- public API ------------------------------------------------------

    def request(self, method: str, params: Params = None, *, id: Optional[Union[int, str]] = None) -> JSON:
        """Perform a single JSON-RPC request and return `result` or raise RpcError."""
        payload = self._make_payload(method, params, id)
        return self._send_once(payload)

    call = request

    # --- internals -------------------------------------------------------

    def _make_payload(self, method: str, params: Params, id: Optional[Union[int, str]] = None) -> Dict[str, Any]:
        if id is None:
            id = next(self._ids)
        if params is None:
            params = []
        elif isinstance(params, Mapping):
            params = dict(params)
        elif isinstance(params, Sequence) and not isinstance(params, (str, bytes, bytearray)):
            params = list(params)
        else:
            params = [params]
        return {"jsonrpc": "2.0", "id": id, "method": method, "params": params}

    def _send_once(self, payload: Dict[str, Any]) -> JSON:
        method, rid = payload["method"], payload["id"]
        body = json.dumps(payload, separators=(",", ":"), ensure_ascii=False)
        try:
            r = self._client.post(self.url, content=body)
        except (httpx.TimeoutException, httpx.NetworkError) as e:
            raise RpcError(code=JsonRpcCode.TRANSPORT, message="network error", method=method,
                           data=str(e), request_id=rid) from e

        if r.status_code in _THROTTLE_STATUS:
            raise RpcError(code=_THROTTLE_STATUS[r.status_code], message=f"HTTP {r.status_code}",
                           method=method, request_id=rid, http_status=r.status_code)
        try:
            resp = r.json()
        except ValueError as e:
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="non-JSON response from RPC",
                           method=method, data=f"HTTP {r.status_code}: {r.text[:256]}",
                           request_id=rid, http_status=r.status_code) from e

        if not isinstance(resp, dict):
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="invalid JSON-RPC response type",
                           method=method, data=type(resp).__name__, request_id=rid)
        if resp.get("error") is not None:
            raise from_jsonrpc_error(resp["error"], method=method, request_id=rid, http_status=r.status_code)
        if "result" not in resp:
            raise RpcError(code=JsonRpcCode.INTERNAL_ERROR, message="malformed JSON-RPC response",
                           method=method, data=resp, request_id=rid)
        log.debug("rpc %s id=%s ok", method, rid)
        return resp["result"]


__all__ = ["RpcClient"]
