"""Domain models for coaching sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum
from uuid import UUID


class SessionStatus(StrEnum):
    """Lifecycle states of a coaching session."""

    PENDING = "PENDING"
    ANSWERED = "ANSWERED"
    FOLLOWUP_PENDING = "FOLLOWUP_PENDING"
    COMPLETED = "COMPLETED"
    REFUNDED = "REFUNDED"
    CLOSED = "CLOSED"


TERMINAL_STATUSES = frozenset(
    {SessionStatus.COMPLETED, SessionStatus.REFUNDED, SessionStatus.CLOSED}
)


@dataclass(frozen=True)
class Feedback:
    """Mentor's answer to the initial request."""

    feedback_image_url: str
    comment: str


@dataclass(frozen=True)
class FollowUp:
    """The single follow-up question a student may ask."""

    question: str
    question_at: datetime
    answer: str | None = None
    answer_at: datetime | None = None


@dataclass(frozen=True)
class CoachingSession:
    """Represents one paid feedback request between a student and a mentor."""

    id: UUID
    student_id: str
    mentor_id: str
    original_image_url: str
    initial_question: str
    status: SessionStatus
    created_at: datetime
    deadline_at: datetime
    answered_at: datetime | None = None
    closed_at: datetime | None = None
    feedback: Feedback | None = None
    follow_up: FollowUp | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
