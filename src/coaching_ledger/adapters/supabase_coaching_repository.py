"""Supabase-backed coaching session and ledger repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from postgrest.exceptions import APIError
from supabase import Client

from coaching_ledger.domain.errors import ConcurrentUpdate, InsufficientCredits
from coaching_ledger.domain.ledger import CreditTransaction, TransactionType
from coaching_ledger.domain.sessions import (
    CoachingSession,
    Feedback,
    FollowUp,
    SessionStatus,
)
from coaching_ledger.services.coaching import CoachingSessionRepository
from coaching_ledger.services.ledger import LedgerRepository

_SESSION_COLUMNS = (
    "id, student_id, mentor_id, original_image_url, initial_question, status, "
    "created_at, deadline_at, answered_at, closed_at, feedback_json, follow_up_json"
)
_TRANSACTION_COLUMNS = "id, user_id, amount, type, session_id, created_at"

# SQLSTATEs raised by commit_coaching_session.
_STALE_SESSION = "CL409"
_INSUFFICIENT_CREDITS = "CL402"
# A second USE or REFUND for one session.
_UNIQUE_VIOLATION = "23505"


@dataclass
class SupabaseCoachingRepository(CoachingSessionRepository, LedgerRepository):
    """Supabase implementation for coaching sessions and credit transactions.

    Session writes go through the ``commit_coaching_session`` database
    function so the session row and its ledger entries land in a single
    transaction. The function rejects writes computed from a stale status,
    debits that would overdraw a balance, and repeated debits or refunds.
    """

    client: Client

    def get_session(self, session_id: UUID) -> CoachingSession | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("coaching_sessions")
            .select(_SESSION_COLUMNS)
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return _session_from_row(response.data[0])

    def list_user_sessions(self, user_id: str) -> list[CoachingSession]:
        """Return sessions where the user is the student or the mentor."""
        response = (
            self.client.table("coaching_sessions")
            .select(_SESSION_COLUMNS)
            .or_(f"student_id.eq.{user_id},mentor_id.eq.{user_id}")
            .order("created_at", desc=True)
            .execute()
        )
        return [_session_from_row(row) for row in response.data or []]

    def commit(
        self,
        session: CoachingSession,
        transactions: list[CreditTransaction],
        expected_status: SessionStatus | None,
    ) -> None:
        """Upsert the session and insert ledger entries atomically."""
        try:
            self.client.rpc(
                "commit_coaching_session",
                {
                    "session": _session_to_row(session),
                    "transactions": [_transaction_to_row(txn) for txn in transactions],
                    "expected_status": (
                        expected_status.value if expected_status else None
                    ),
                },
            ).execute()
        except APIError as exc:
            if exc.code == _UNIQUE_VIOLATION:
                raise ConcurrentUpdate(session.id, expected_status, None) from exc
            if exc.code == _STALE_SESSION:
                actual = SessionStatus(exc.details) if exc.details else None
                raise ConcurrentUpdate(session.id, expected_status, actual) from exc
            if exc.code == _INSUFFICIENT_CREDITS:
                balance = int(exc.details or 0)
                cost = -sum(txn.amount for txn in transactions if txn.amount < 0)
                raise InsufficientCredits(session.student_id, balance, cost) from exc
            raise

    def list_transactions(self, user_id: str) -> list[CreditTransaction]:
        """Return all ledger entries for a user."""
        response = (
            self.client.table("credit_transactions")
            .select(_TRANSACTION_COLUMNS)
            .eq("user_id", user_id)
            .order("created_at", desc=True)
            .execute()
        )
        return [_transaction_from_row(row) for row in response.data or []]

    def list_session_transactions(self, session_id: UUID) -> list[CreditTransaction]:
        """Return all ledger entries linked to a session."""
        response = (
            self.client.table("credit_transactions")
            .select(_TRANSACTION_COLUMNS)
            .eq("session_id", str(session_id))
            .execute()
        )
        return [_transaction_from_row(row) for row in response.data or []]

    def append_transactions(self, transactions: list[CreditTransaction]) -> None:
        """Insert ledger entries that are not tied to a session write."""
        if not transactions:
            return
        response = (
            self.client.table("credit_transactions")
            .insert([_transaction_to_row(txn) for txn in transactions])
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to record credit transactions")


def _session_to_row(session: CoachingSession) -> dict[str, object]:
    feedback = session.feedback
    follow_up = session.follow_up
    return {
        "id": str(session.id),
        "student_id": session.student_id,
        "mentor_id": session.mentor_id,
        "original_image_url": session.original_image_url,
        "initial_question": session.initial_question,
        "status": session.status.value,
        "created_at": session.created_at.isoformat(),
        "deadline_at": session.deadline_at.isoformat(),
        "answered_at": _iso(session.answered_at),
        "closed_at": _iso(session.closed_at),
        "feedback_json": (
            {
                "feedback_image_url": feedback.feedback_image_url,
                "comment": feedback.comment,
            }
            if feedback
            else None
        ),
        "follow_up_json": (
            {
                "question": follow_up.question,
                "question_at": follow_up.question_at.isoformat(),
                "answer": follow_up.answer,
                "answer_at": _iso(follow_up.answer_at),
            }
            if follow_up
            else None
        ),
    }


def _session_from_row(row: dict[str, object]) -> CoachingSession:
    feedback = row.get("feedback_json")
    follow_up = row.get("follow_up_json")
    return CoachingSession(
        id=UUID(str(row["id"])),
        student_id=str(row["student_id"]),
        mentor_id=str(row["mentor_id"]),
        original_image_url=str(row["original_image_url"]),
        initial_question=str(row["initial_question"]),
        status=SessionStatus(row["status"]),
        created_at=_parse_datetime(row["created_at"]),
        deadline_at=_parse_datetime(row["deadline_at"]),
        answered_at=_parse_optional_datetime(row.get("answered_at")),
        closed_at=_parse_optional_datetime(row.get("closed_at")),
        feedback=(
            Feedback(
                feedback_image_url=str(feedback["feedback_image_url"]),
                comment=str(feedback["comment"]),
            )
            if isinstance(feedback, dict)
            else None
        ),
        follow_up=(
            FollowUp(
                question=str(follow_up["question"]),
                question_at=_parse_datetime(follow_up["question_at"]),
                answer=follow_up.get("answer"),
                answer_at=_parse_optional_datetime(follow_up.get("answer_at")),
            )
            if isinstance(follow_up, dict)
            else None
        ),
    )


def _transaction_to_row(txn: CreditTransaction) -> dict[str, object]:
    return {
        "id": str(txn.id),
        "user_id": txn.user_id,
        "amount": txn.amount,
        "type": txn.type.value,
        "session_id": str(txn.session_id) if txn.session_id else None,
        "created_at": txn.created_at.isoformat(),
    }


def _transaction_from_row(row: dict[str, object]) -> CreditTransaction:
    session_id = row.get("session_id")
    return CreditTransaction(
        id=UUID(str(row["id"])),
        user_id=str(row["user_id"]),
        amount=int(row["amount"]),
        type=TransactionType(row["type"]),
        session_id=UUID(str(session_id)) if session_id else None,
        created_at=_parse_datetime(row["created_at"]),
    )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _parse_datetime(value: object) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value))


def _parse_optional_datetime(value: object) -> datetime | None:
    if value is None:
        return None
    return _parse_datetime(value)
