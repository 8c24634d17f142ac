"""In-process coaching store."""

import threading
from collections import defaultdict
from dataclasses import dataclass, field
from uuid import UUID

from coaching_ledger.domain.errors import ConcurrentUpdate, InsufficientCredits
from coaching_ledger.domain.ledger import CreditTransaction, TransactionType
from coaching_ledger.domain.sessions import CoachingSession, SessionStatus
from coaching_ledger.services.coaching import CoachingSessionRepository
from coaching_ledger.services.ledger import LedgerRepository

_ONCE_PER_SESSION = {TransactionType.USE, TransactionType.REFUND}


@dataclass
class InMemoryCoachingRepository(CoachingSessionRepository, LedgerRepository):
    """Dict-backed store for sessions and ledger entries.

    ``commit`` applies the same checks as the database function: the stored
    status must match, a session is debited and refunded at most once, and
    no debit may take a balance below zero.
    """

    sessions: dict[UUID, CoachingSession] = field(default_factory=dict)
    transactions: list[CreditTransaction] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    def get_session(self, session_id: UUID) -> CoachingSession | None:
        with self._lock:
            return self.sessions.get(session_id)

    def list_user_sessions(self, user_id: str) -> list[CoachingSession]:
        with self._lock:
            return [
                session
                for session in self.sessions.values()
                if user_id in {session.student_id, session.mentor_id}
            ]

    def commit(
        self,
        session: CoachingSession,
        transactions: list[CreditTransaction],
        expected_status: SessionStatus | None,
    ) -> None:
        with self._lock:
            stored = self.sessions.get(session.id)
            actual = stored.status if stored else None
            if actual != expected_status:
                raise ConcurrentUpdate(session.id, expected_status, actual)
            for txn in transactions:
                if txn.type in _ONCE_PER_SESSION and any(
                    existing.session_id == txn.session_id
                    and existing.type == txn.type
                    for existing in self.transactions
                ):
                    raise ConcurrentUpdate(session.id, expected_status, actual)
            self._check_debits(transactions)
            self.sessions[session.id] = session
            self.transactions.extend(transactions)

    def list_transactions(self, user_id: str) -> list[CreditTransaction]:
        with self._lock:
            return [txn for txn in self.transactions if txn.user_id == user_id]

    def list_session_transactions(self, session_id: UUID) -> list[CreditTransaction]:
        with self._lock:
            return [txn for txn in self.transactions if txn.session_id == session_id]

    def append_transactions(self, transactions: list[CreditTransaction]) -> None:
        with self._lock:
            self._check_debits(transactions)
            self.transactions.extend(transactions)

    def _check_debits(self, transactions: list[CreditTransaction]) -> None:
        deltas: dict[str, int] = defaultdict(int)
        for txn in transactions:
            deltas[txn.user_id] += txn.amount
        for user_id, delta in deltas.items():
            if delta >= 0:
                continue
            balance = sum(
                txn.amount for txn in self.transactions if txn.user_id == user_id
            )
            if balance + delta < 0:
                raise InsufficientCredits(user_id, balance, -delta)
