"""Errors raised by coaching session commands."""

from uuid import UUID

from coaching_ledger.domain.sessions import SessionStatus


class CoachingError(Exception):
    """Base class for caller-visible coaching failures."""


class InsufficientCredits(CoachingError):
    """The student cannot afford the requested session."""

    def __init__(self, user_id: str, balance: int, cost: int) -> None:
        super().__init__(
            f"User {user_id} has {balance} credits, session costs {cost}"
        )
        self.user_id = user_id
        self.balance = balance
        self.cost = cost


class InvalidCreditAmount(CoachingError):
    """A cost or grant was zero or negative."""

    def __init__(self, amount: int) -> None:
        super().__init__(f"Credit amount must be positive, got {amount}")
        self.amount = amount


class SessionNotFound(CoachingError):
    """No session exists for the given id."""

    def __init__(self, session_id: UUID) -> None:
        super().__init__(f"Session {session_id} not found")
        self.session_id = session_id


class PreconditionFailed(CoachingError):
    """The session is not in the status a command requires."""

    def __init__(
        self, session_id: UUID, expected: SessionStatus, actual: SessionStatus
    ) -> None:
        super().__init__(
            f"Session {session_id} must be {expected.value}, but is {actual.value}"
        )
        self.session_id = session_id
        self.expected = expected
        self.actual = actual


class InvalidFollowUpState(CoachingError):
    """There is no unanswered follow-up question to reply to."""

    def __init__(self, session_id: UUID) -> None:
        super().__init__(f"Session {session_id} has no open follow-up question")
        self.session_id = session_id


class ConcurrentUpdate(CoachingError):
    """The stored session changed between load and commit."""

    def __init__(
        self,
        session_id: UUID,
        expected: SessionStatus | None,
        actual: SessionStatus | None,
    ) -> None:
        super().__init__(
            f"Session {session_id} changed before commit, expected "
            f"{expected.value if expected else 'no stored row'}"
        )
        self.session_id = session_id
        self.expected = expected
        self.actual = actual
