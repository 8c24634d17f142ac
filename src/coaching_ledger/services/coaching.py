"""Coaching session lifecycle: commands, queries and deadline settlement."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Protocol
from uuid import UUID, uuid4

from coaching_ledger.domain.errors import (
    ConcurrentUpdate,
    InsufficientCredits,
    InvalidFollowUpState,
    PreconditionFailed,
    SessionNotFound,
)
from coaching_ledger.domain.ledger import CreditTransaction
from coaching_ledger.domain.lifecycle import DeadlinePolicy, deadline_for, evaluate
from coaching_ledger.domain.sessions import (
    CoachingSession,
    Feedback,
    FollowUp,
    SessionStatus,
)
from coaching_ledger.services.clock import Clock
from coaching_ledger.services.ledger import CreditLedgerService
from coaching_ledger.services.locks import KeyedLocks

logger = logging.getLogger(__name__)

_COMMIT_ATTEMPTS = 3

Transition = Callable[[CoachingSession, datetime], CoachingSession]


class CoachingSessionRepository(Protocol):
    """Persistence interface for coaching sessions."""

    def get_session(self, session_id: UUID) -> CoachingSession | None:
        """Return a session by id, if present."""

    def list_user_sessions(self, user_id: str) -> list[CoachingSession]:
        """Return sessions where the user is the student or the mentor."""

    def commit(
        self,
        session: CoachingSession,
        transactions: list[CreditTransaction],
        expected_status: SessionStatus | None,
    ) -> None:
        """Persist a session and new ledger entries as one unit.

        ``expected_status`` is the stored status the write was computed from,
        or None for a new session. Raises ConcurrentUpdate when the stored
        row no longer matches, and InsufficientCredits when a debit would
        take a balance below zero.
        """


@dataclass
class CoachingService:
    """Runs the coaching session state machine on top of the credit ledger.

    The in-process locks keep threads of one worker from racing each other.
    Across workers, the repository's status check on commit rejects writes
    computed from a stale snapshot, and the session is reloaded.
    """

    repository: CoachingSessionRepository
    ledger: CreditLedgerService
    clock: Clock
    policy: DeadlinePolicy = field(default_factory=DeadlinePolicy)
    session_locks: KeyedLocks = field(default_factory=KeyedLocks)
    user_locks: KeyedLocks = field(default_factory=KeyedLocks)

    def create_session(  # noqa: PLR0913
        self,
        student_id: str,
        mentor_id: str,
        original_image_url: str,
        initial_question: str,
        cost: int,
    ) -> CoachingSession:
        """Charge the student and open a session awaiting mentor feedback."""
        with self.user_locks.hold(student_id):
            now = self.clock.now()
            session_id = uuid4()
            debit = self.ledger.debit_for_session(student_id, session_id, cost, now)
            balance = self.ledger.get_balance(student_id)
            if balance < cost:
                logger.warning(
                    "Rejected session for %s: balance %s < cost %s",
                    student_id,
                    balance,
                    cost,
                )
                raise InsufficientCredits(student_id, balance, cost)
            session = CoachingSession(
                id=session_id,
                student_id=student_id,
                mentor_id=mentor_id,
                original_image_url=original_image_url,
                initial_question=initial_question,
                status=SessionStatus.PENDING,
                created_at=now,
                deadline_at=deadline_for(SessionStatus.PENDING, now, self.policy),
            )
            self.repository.commit(session, [debit], expected_status=None)
        logger.info(
            "Created session %s: %s -> %s for %s credits",
            session.id,
            student_id,
            mentor_id,
            cost,
        )
        return session

    def submit_feedback(self, session_id: UUID, feedback: Feedback) -> CoachingSession:
        """Record the mentor's feedback on a pending session."""

        def answer(session: CoachingSession, now: datetime) -> CoachingSession:
            _require(session, SessionStatus.PENDING)
            return replace(
                session,
                status=SessionStatus.ANSWERED,
                feedback=feedback,
                answered_at=now,
                deadline_at=deadline_for(SessionStatus.ANSWERED, now, self.policy),
            )

        updated = self._apply(session_id, answer)
        logger.info("Session %s answered", session_id)
        return updated

    def submit_follow_up(self, session_id: UUID, question: str) -> CoachingSession:
        """Record the student's single follow-up question."""

        def ask(session: CoachingSession, now: datetime) -> CoachingSession:
            _require(session, SessionStatus.ANSWERED)
            if session.follow_up is not None:
                raise InvalidFollowUpState(session_id)
            return replace(
                session,
                status=SessionStatus.FOLLOWUP_PENDING,
                follow_up=FollowUp(question=question, question_at=now),
                deadline_at=deadline_for(
                    SessionStatus.FOLLOWUP_PENDING, now, self.policy
                ),
            )

        updated = self._apply(session_id, ask)
        logger.info("Session %s received a follow-up question", session_id)
        return updated

    def reply_to_follow_up(self, session_id: UUID, answer: str) -> CoachingSession:
        """Record the mentor's answer to the follow-up and complete the session."""

        def reply(session: CoachingSession, now: datetime) -> CoachingSession:
            _require(session, SessionStatus.FOLLOWUP_PENDING)
            follow_up = session.follow_up
            if follow_up is None or follow_up.answer is not None:
                raise InvalidFollowUpState(session_id)
            return replace(
                session,
                status=SessionStatus.COMPLETED,
                follow_up=replace(follow_up, answer=answer, answer_at=now),
                closed_at=now,
            )

        updated = self._apply(session_id, reply)
        logger.info("Session %s completed", session_id)
        return updated

    def get_session(self, session_id: UUID) -> CoachingSession:
        """Return the session as it stands now."""
        with self.session_locks.hold(session_id):
            session, _ = self._load(session_id)
        return session

    def list_user_sessions(self, user_id: str) -> list[CoachingSession]:
        """Return the user's sessions as they stand now, newest first."""
        sessions = []
        for stored in self.repository.list_user_sessions(user_id):
            with self.session_locks.hold(stored.id):
                session, _ = self._load(stored.id)
            sessions.append(session)
        return sorted(sessions, key=lambda item: item.created_at, reverse=True)

    def _apply(self, session_id: UUID, transition: Transition) -> CoachingSession:
        """Load, settle and transition a session, reloading on stale commits."""
        with self.session_locks.hold(session_id):
            for attempt in range(_COMMIT_ATTEMPTS):
                session, now = self._load(session_id)
                updated = transition(session, now)
                try:
                    self.repository.commit(
                        updated, [], expected_status=session.status
                    )
                except ConcurrentUpdate as exc:
                    if attempt == _COMMIT_ATTEMPTS - 1:
                        raise
                    logger.info("Reloading session %s: %s", session_id, exc)
                    continue
                return updated
        raise AssertionError("unreachable")

    def _load(self, session_id: UUID) -> tuple[CoachingSession, datetime]:
        """Load a session and settle any lapsed deadline.

        Callers must hold the session's lock.
        """
        for attempt in range(_COMMIT_ATTEMPTS):
            session = self.repository.get_session(session_id)
            if session is None:
                raise SessionNotFound(session_id)
            now = self.clock.now()
            try:
                return self._settle(session, now), now
            except ConcurrentUpdate as exc:
                if attempt == _COMMIT_ATTEMPTS - 1:
                    raise
                logger.info("Reloading session %s: %s", session_id, exc)
        raise AssertionError("unreachable")

    def _settle(self, session: CoachingSession, now: datetime) -> CoachingSession:
        evaluation = evaluate(session, now)
        if not evaluation.lapsed:
            return session
        transactions: list[CreditTransaction] = []
        if evaluation.refund_due:
            refund = self.ledger.refund_for_session(session.student_id, session.id, now)
            if refund is not None:
                transactions.append(refund)
        self.repository.commit(
            evaluation.session, transactions, expected_status=session.status
        )
        logger.info(
            "Session %s lapsed from %s to %s",
            session.id,
            session.status.value,
            evaluation.session.status.value,
        )
        return evaluation.session


def _require(session: CoachingSession, expected: SessionStatus) -> None:
    if session.status != expected:
        logger.warning(
            "Session %s is %s, expected %s",
            session.id,
            session.status.value,
            expected.value,
        )
        raise PreconditionFailed(session.id, expected, session.status)
