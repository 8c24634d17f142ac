"""Credit ledger service."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol
from uuid import UUID, uuid4

from coaching_ledger.domain.errors import InvalidCreditAmount
from coaching_ledger.domain.ledger import CreditTransaction, TransactionType
from coaching_ledger.services.clock import Clock

logger = logging.getLogger(__name__)


class LedgerRepository(Protocol):
    """Persistence interface for credit transactions."""

    def list_transactions(self, user_id: str) -> list[CreditTransaction]:
        """Return all transactions for a user."""

    def list_session_transactions(self, session_id: UUID) -> list[CreditTransaction]:
        """Return all transactions linked to a session."""

    def append_transactions(self, transactions: list[CreditTransaction]) -> None:
        """Append transactions to the ledger."""


@dataclass
class CreditLedgerService:
    """Balances, history and entry construction for the credit ledger.

    Balances are never stored. They are derived by summing a user's entries,
    so concurrent appends cannot lose an update.
    """

    repository: LedgerRepository
    clock: Clock

    def get_balance(self, user_id: str) -> int:
        """Return the user's current balance."""
        return sum(txn.amount for txn in self.repository.list_transactions(user_id))

    def get_transaction_history(self, user_id: str) -> list[CreditTransaction]:
        """Return the user's transactions, newest first."""
        transactions = self.repository.list_transactions(user_id)
        return sorted(transactions, key=lambda txn: txn.created_at, reverse=True)

    def grant_credits(self, user_id: str, amount: int) -> CreditTransaction:
        """Credit a user outside of any session."""
        if amount <= 0:
            raise InvalidCreditAmount(amount)
        transaction = _entry(
            user_id, amount, TransactionType.EARN, None, self.clock.now()
        )
        self.repository.append_transactions([transaction])
        logger.info("Granted %s credits to %s", amount, user_id)
        return transaction

    def debit_for_session(
        self, user_id: str, session_id: UUID, cost: int, now: datetime
    ) -> CreditTransaction:
        """Build the USE entry that pays for a session."""
        if cost <= 0:
            raise InvalidCreditAmount(cost)
        return _entry(user_id, -cost, TransactionType.USE, session_id, now)

    def refund_for_session(
        self, user_id: str, session_id: UUID, now: datetime
    ) -> CreditTransaction | None:
        """Build the REFUND entry that returns a session's cost.

        The amount comes from the session's own debit. Returns None when the
        session already nets to zero.
        """
        entries = self.repository.list_session_transactions(session_id)
        outstanding = -sum(txn.amount for txn in entries)
        if outstanding <= 0:
            logger.warning("Session %s has nothing left to refund", session_id)
            return None
        return _entry(user_id, outstanding, TransactionType.REFUND, session_id, now)


def _entry(
    user_id: str,
    amount: int,
    type_: TransactionType,
    session_id: UUID | None,
    created_at: datetime,
) -> CreditTransaction:
    return CreditTransaction(
        id=uuid4(),
        user_id=user_id,
        amount=amount,
        type=type_,
        session_id=session_id,
        created_at=created_at,
    )
