"""
Consensus topics: create a topic, submit messages, subscribe to the ordered
message stream.

    tid = create_topic(ctx, memo="demo")
    with subscribe(ctx, tid, lambda m: print(m.sequence_number, m.text)):
        submit_message(tid, "hello", ctx)
"""

from __future__ import annotations

import logging
from typing import Optional, Union

from .context import NetworkContext
from .errors import IncompleteReceipt
from .network.base import OnMessage, Subscription
from .tx import build
from .tx.send import execute_draft, require_outcome
from .types.core import TopicId
from .types.receipt import Receipt
from .wallet.keys import PrivateKey

log = logging.getLogger(__name__)

__all__ = ["create_topic", "submit_message", "subscribe"]

TopicLike = Union[TopicId, str]


def create_topic(
    ctx: NetworkContext,
    *,
    memo: Optional[str] = None,
    admin_key: Optional[PrivateKey] = None,
    submit_key: Optional[PrivateKey] = None,
    timeout: Optional[float] = None,
) -> TopicId:
    draft = build.topic_create(
        topic_memo=memo,
        admin_key=admin_key.public_key if admin_key is not None else None,
        submit_key=submit_key.public_key if submit_key is not None else None,
    )
    keys = [admin_key] if admin_key is not None else []
    receipt = require_outcome(execute_draft(draft, ctx, keys=keys, timeout=timeout))
    if receipt.topic_id is None:
        raise IncompleteReceipt("topicId", transaction_id=str(receipt.transaction_id))
    log.info("created topic %s", receipt.topic_id)
    return receipt.topic_id


def submit_message(
    topic_id: TopicLike,
    message: Union[str, bytes],
    ctx: NetworkContext,
    *,
    submit_key: Optional[PrivateKey] = None,
    timeout: Optional[float] = None,
) -> Receipt:
    """Submit one message. The receipt carries its topic sequence number."""
    keys = [submit_key] if submit_key is not None else []
    return execute_draft(build.topic_message_submit(topic_id, message), ctx, keys=keys, timeout=timeout)


def subscribe(
    ctx: NetworkContext,
    topic_id: TopicLike,
    on_message: OnMessage,
    *,
    start_time: Optional[float] = None,
) -> Subscription:
    """Receive messages with consensus time >= start_time (all when None), in order."""
    tid = TopicId.parse(topic_id)
    log.debug("subscribing to topic %s from %s", tid, start_time)
    return ctx.network.subscribe_to_topic(str(tid), start_time, on_message)
