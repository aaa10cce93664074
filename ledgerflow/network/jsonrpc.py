"""
`Network` implementation talking JSON-RPC to a ledger gateway.

HTTP (httpx) carries request/response calls:

    ledger_submitTransaction   {"transaction": "<hex envelope>"}   -> {"transactionId", "nodeId"}
    ledger_getReceipt          {"transactionId": "..."}             -> receipt payload
    ledger_getAccountBalance   {"accountId": "0.0.N"}               -> {"native", "tokens"}
    ledger_getScheduleInfo     {"scheduleId": "0.0.N"}              -> schedule payload

Topic subscriptions use a websocket (`ledger_subscribeTopic` /
`ledger_unsubscribeTopic`) driven by an event loop on a daemon thread, so the
synchronous `subscribe_to_topic` API works from plain scripts.

Error mapping
-------------
RATE_LIMITED / NODE_BUSY / TRANSPORT → NetworkError (retried by the resolver)
UNAUTHORIZED                         → UnauthorizedSubmission
anything else                        → RpcError, unchanged
"""

from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Dict, Mapping, Optional

import httpx

from ..errors import ConfigError, JsonRpcCode, NetworkError, RpcError, UnauthorizedSubmission
from ..rpc.http import RpcClient
from ..rpc.ws import WsClient
from ..types.core import TopicMessage
from .base import OnMessage, Subscription

log = logging.getLogger(__name__)

__all__ = ["JsonRpcNetwork"]


class JsonRpcNetwork:
    def __init__(
        self,
        rpc_url: str,
        ws_url: Optional[str] = None,
        *,
        timeout: float = 30.0,
        headers: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.rpc_url = rpc_url
        self.ws_url = ws_url
        self._headers = dict(headers or {})
        self._rpc = RpcClient(rpc_url, timeout=timeout, headers=headers, transport=transport)
        self._subs_lock = threading.Lock()
        self._subs: list[Subscription] = []

    def __repr__(self) -> str:
        return f"JsonRpcNetwork(rpc_url={self.rpc_url!r}, ws_url={self.ws_url!r})"

    # ---- calls ----

    def _call(self, method: str, params: Dict[str, Any], *, transaction_id: Optional[str] = None) -> Any:
        try:
            return self._rpc.request(method, params)
        except RpcError as e:
            if e.transient:
                raise NetworkError(str(e), transaction_id=transaction_id, node_id=self.rpc_url) from e
            if e.code_enum is JsonRpcCode.UNAUTHORIZED:
                raise UnauthorizedSubmission(e.message, transaction_id=transaction_id) from e
            raise

    def submit_transaction(self, signed_bytes: bytes) -> Dict[str, Any]:
        ack = self._call("ledger_submitTransaction", {"transaction": bytes(signed_bytes).hex()})
        return dict(ack) if isinstance(ack, Mapping) else {"transactionId": ack}

    def get_receipt(self, transaction_id: str) -> Dict[str, Any]:
        res = self._call("ledger_getReceipt", {"transactionId": transaction_id}, transaction_id=transaction_id)
        if res is None:
            return {"transactionId": transaction_id, "status": "UNKNOWN"}
        if isinstance(res, Mapping) and isinstance(res.get("receipt"), Mapping):
            res = res["receipt"]
        return dict(res)

    def get_account_balance(self, account_id: str) -> Dict[str, Any]:
        return dict(self._call("ledger_getAccountBalance", {"accountId": account_id}))

    def get_schedule_info(self, schedule_id: str) -> Dict[str, Any]:
        return dict(self._call("ledger_getScheduleInfo", {"scheduleId": schedule_id}))

    # ---- subscriptions ----

    def subscribe_to_topic(
        self, topic_id: str, start_time: Optional[float], on_message: OnMessage
    ) -> Subscription:
        if not self.ws_url:
            raise ConfigError("topic subscriptions need a websocket url (LEDGERFLOW_WS_URL)")

        loop = asyncio.new_event_loop()
        thread = threading.Thread(target=loop.run_forever, name=f"ledgerflow-topic-{topic_id}", daemon=True)
        thread.start()
        ws = WsClient(self.ws_url, headers=self._headers)

        def on_event(event: Any) -> None:
            on_message(TopicMessage.from_dict(event))

        async def _open() -> str:
            await ws.connect()
            return await ws.subscribe(
                "ledger_subscribeTopic", {"topicId": topic_id, "startTime": start_time}, on_event=on_event
            )

        def _stop_loop() -> None:
            loop.call_soon_threadsafe(loop.stop)
            thread.join(timeout=5.0)
            loop.close()

        try:
            sub_id = asyncio.run_coroutine_threadsafe(_open(), loop).result(timeout=ws.connect_timeout + 5.0)
        except BaseException:
            _stop_loop()
            raise

        async def _close() -> None:
            await ws.unsubscribe("ledger_unsubscribeTopic", sub_id)
            await ws.close()

        def on_close() -> None:
            try:
                asyncio.run_coroutine_threadsafe(_close(), loop).result(timeout=10.0)
            finally:
                _stop_loop()
                with self._subs_lock:
                    if sub in self._subs:
                        self._subs.remove(sub)

        sub = Subscription(topic_id, on_close=on_close)
        with self._subs_lock:
            self._subs.append(sub)
        log.info("subscribed to topic %s (sub=%s)", topic_id, sub_id)
        return sub

    def close(self) -> None:
        with self._subs_lock:
            subs = list(self._subs)
        for sub in subs:
            sub.unsubscribe()
        self._rpc.close()
