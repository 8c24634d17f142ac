"""Deadline evaluation for coaching sessions.

Deadlines are never enforced by a background job. Every read or write of a
session passes it through :func:`evaluate` first, which derives the state the
session must be in at ``now`` from its stored state. Evaluating a session any
number of times, early or arbitrarily late, converges on the same result.
"""

from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from coaching_ledger.domain.sessions import CoachingSession, SessionStatus


@dataclass(frozen=True)
class DeadlinePolicy:
    """How long each party has to act before a session lapses."""

    mentor_response: timedelta = timedelta(hours=24)
    followup_window: timedelta = timedelta(hours=48)
    followup_reply: timedelta = timedelta(hours=24)


@dataclass(frozen=True)
class Evaluation:
    """Outcome of evaluating a session at a point in time."""

    session: CoachingSession
    lapsed: bool = False
    refund_due: bool = False


def deadline_for(
    status: SessionStatus, reference: datetime, policy: DeadlinePolicy
) -> datetime:
    """Return the deadline for entering ``status`` at ``reference``."""
    if status == SessionStatus.PENDING:
        return reference + policy.mentor_response
    if status == SessionStatus.ANSWERED:
        return reference + policy.followup_window
    if status == SessionStatus.FOLLOWUP_PENDING:
        return reference + policy.followup_reply
    # Terminal states keep their last deadline; it is never consulted again.
    return reference


def evaluate(session: CoachingSession, now: datetime) -> Evaluation:
    """Apply the timeout transition for ``session`` if its deadline lapsed."""
    if session.is_terminal or now <= session.deadline_at:
        return Evaluation(session)

    if session.status == SessionStatus.ANSWERED:
        # The mentor delivered; the student let the follow-up window pass.
        return Evaluation(
            replace(session, status=SessionStatus.CLOSED, closed_at=now),
            lapsed=True,
        )

    # PENDING or FOLLOWUP_PENDING: the mentor missed a reply.
    return Evaluation(
        replace(session, status=SessionStatus.REFUNDED, closed_at=now),
        lapsed=True,
        refund_due=True,
    )
