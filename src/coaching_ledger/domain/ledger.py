"""Domain models for the credit ledger."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class TransactionType(StrEnum):
    """Kinds of ledger entries."""

    USE = "USE"
    REFUND = "REFUND"
    EARN = "EARN"


@dataclass(frozen=True)
class CreditTransaction:
    """Append-only ledger entry; negative amounts are debits."""

    id: UUID
    user_id: str
    amount: int
    type: TransactionType
    session_id: UUID | None
    created_at: datetime
