"""
ledgerflow.types
================

Identifier, balance and receipt types shared by every pipeline stage.
"""

from .core import (AccountId, AccountLike, Amount, Balance, EntityId,
                   ScheduleId, TokenId, TokenLike, TopicId, TopicMessage,
                   TransactionId)
from .receipt import Receipt, ReceiptStatus

__all__ = [
    "Amount",
    "EntityId",
    "AccountId",
    "TokenId",
    "ScheduleId",
    "TopicId",
    "AccountLike",
    "TokenLike",
    "TransactionId",
    "Balance",
    "TopicMessage",
    "Receipt",
    "ReceiptStatus",
]
