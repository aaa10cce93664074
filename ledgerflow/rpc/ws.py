"""
WebSocket JSON-RPC client (async) with reconnect and subscription dispatch.

- Uses the `websockets` package (asyncio implementation).
- Correlates requests by `id` and routes subscription notifications of the form
    {"jsonrpc":"2.0","method":"<m>","params":{"subscription":"<id>","result":<event>}}
  to the handler registered for that subscription id.
- Subscriptions are restored after a reconnect.

Example:
    async with WsClient("ws://localhost:50211/ws") as ws:
        sub_id = await ws.subscribe("ledger_subscribeTopic", {"topicId": "0.0.9"},
                                    on_event=print)
"""

from __future__ import annotations

import asyncio
import contextlib
import json
import logging
import time
from dataclasses import dataclass, field
from itertools import count
from typing import Any, Callable, Dict, Iterator, Mapping, Optional, Tuple, Union

from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed

from ..errors import JsonRpcCode, RpcError, from_jsonrpc_error
from ..utils.retry import backoff_delay
from ..version import __version__

log = logging.getLogger(__name__)

JSON = Union[dict, list, str, int, float, bool, None]
Params = Union[list, dict, None]
OnEvent = Callable[[JSON], None]


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class WsClient:
    url: str
    headers: Optional[Mapping[str, str]] = None
    connect_timeout: float = 15.0
    request_timeout: float = 30.0
    ping_interval: Optional[float] = 20.0
    max_retries: int = 5
    backoff_base: float = 0.25
    backoff_max: float = 5.0
    _ids: Iterator[int] = field(default_factory=lambda: count(start=_now_ms()))
    _ws: Optional[ClientConnection] = field(init=False, default=None)
    _reader_task: Optional[asyncio.Task] = field(init=False, default=None)
    _pending: Dict[int, asyncio.Future] = field(init=False, default_factory=dict)
    _handlers: Dict[str, OnEvent] = field(init=False, default_factory=dict)
    _resubscribe: Dict[str, Tuple[str, Params, OnEvent]] = field(init=False, default_factory=dict)
    _closing: bool = field(init=False, default=False)

    # ------------- context manager -------------

    async def __aenter__(self) -> "WsClient":
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        await self.close()

    # ------------- lifecycle -------------------

    async def connect(self) -> None:
        self._closing = False
        hdrs = {"User-Agent": f"ledgerflow-python/{__version__}"}
        if self.headers:
            hdrs.update(dict(self.headers))

        attempt = 0
        while True:
            attempt += 1
            try:
                self._ws = await asyncio.wait_for(
                    connect(self.url, additional_headers=hdrs, ping_interval=self.ping_interval),
                    timeout=self.connect_timeout,
                )
                break
            except (OSError, asyncio.TimeoutError, ConnectionClosed) as e:
                if attempt > self.max_retries:
                    raise RpcError(code=JsonRpcCode.TRANSPORT, message="WS connect failed", data=str(e)) from e
                await asyncio.sleep(backoff_delay(attempt, base=self.backoff_base, max_delay=self.backoff_max))

        self._reader_task = asyncio.create_task(self._reader_loop(), name="WsClient.reader")
        if self._resubscribe:
            await self._restore_subscriptions()

    async def close(self) -> None:
        self._closing = True
        if self._reader_task is not None and not self._reader_task.done():
            self._reader_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._reader_task
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        self._fail_pending("WS closed")

    # ------------- RPC primitives --------------

    async def request(self, method: str, params: Params = None) -> JSON:
        if self._ws is None:
            await self.connect()
        assert self._ws is not None

        rid = next(self._ids)
        payload = {"jsonrpc": "2.0", "id": rid, "method": method, "params": params if params is not None else []}
        fut: asyncio.Future = asyncio.get_running_loop().create_future()
        self._pending[rid] = fut
        try:
            try:
                await asyncio.wait_for(self._ws.send(json.dumps(payload, separators=(",", ":"))),
                                       timeout=self.request_timeout)
            except (ConnectionClosed, asyncio.TimeoutError) as e:
                raise RpcError(code=JsonRpcCode.TRANSPORT, message="WS send failed", method=method,
                               data=str(e), request_id=rid) from e
            return await asyncio.wait_for(fut, timeout=self.request_timeout)
        finally:
            self._pending.pop(rid, None)

    # ------------- Subscriptions ----------------

    async def subscribe(self, method: str, params: Params = None, *, on_event: OnEvent) -> str:
        """Subscribe via `method`; the server answers with a subscription id."""
        res = await self.request(method, params)
        sub_id = str(res["subscription"]) if isinstance(res, dict) and "subscription" in res else str(res)
        self._handlers[sub_id] = on_event
        self._resubscribe[sub_id] = (method, params, on_event)
        return sub_id

    async def unsubscribe(self, method: str, sub_id: str) -> bool:
        self._handlers.pop(sub_id, None)
        self._resubscribe.pop(sub_id, None)
        try:
            return bool(await self.request(method, [sub_id]))
        except RpcError as e:
            log.warning("unsubscribe %s failed: %s", sub_id, e)
            return False

    # ------------- internals --------------------

    def _fail_pending(self, reason: str) -> None:
        for fut in list(self._pending.values()):
            if not fut.done():
                fut.set_exception(RpcError(code=JsonRpcCode.TRANSPORT, message=reason))
        self._pending.clear()

    def _dispatch(self, data: Any) -> None:
        if not isinstance(data, dict):
            return
        if "id" in data and data["id"] is not None:
            fut = self._pending.get(data["id"])
            if fut is None or fut.done():
                return
            if data.get("error") is not None:
                fut.set_exception(from_jsonrpc_error(data["error"], request_id=data["id"]))
            else:
                fut.set_result(data.get("result"))
            return

        params = data.get("params")
        if isinstance(params, dict) and "subscription" in params:
            handler = self._handlers.get(str(params["subscription"]))
            if handler is None:
                return
            try:
                handler(params.get("result"))
            except Exception:
                log.exception("subscription handler failed (sub=%s)", params["subscription"])

    async def _reader_loop(self) -> None:
        assert self._ws is not None
        while True:
            try:
                frame = await self._ws.recv()
            except ConnectionClosed:
                if not self._closing:
                    await self._reconnect()
                return
            try:
                data = json.loads(frame)
            except ValueError:
                log.debug("ignoring non-JSON frame")
                continue
            self._dispatch(data)

    async def _reconnect(self) -> None:
        self._fail_pending("WS disconnected")
        log.warning("websocket to %s dropped; reconnecting", self.url)
        try:
            await self.connect()
        except RpcError as e:
            log.error("websocket reconnect gave up: %s", e)

    async def _restore_subscriptions(self) -> None:
        snapshot = list(self._resubscribe.items())
        self._handlers.clear()
        self._resubscribe.clear()
        for old_id, (method, params, handler) in snapshot:
            try:
                await self.subscribe(method, params, on_event=handler)
            except RpcError as e:
                log.error("could not restore subscription %s (%s): %s", old_id, method, e)


__all__ = ["WsClient", "JSON", "Params", "OnEvent"]
