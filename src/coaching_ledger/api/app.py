"""FastAPI application factory."""

import logging
from dataclasses import asdict
from uuid import UUID

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from coaching_ledger.api.admin import router as admin_router
from coaching_ledger.api.models import (
    CreateSessionRequest,
    FeedbackRequest,
    FollowUpReplyRequest,
    FollowUpRequest,
)
from coaching_ledger.app_logging import configure_logging
from coaching_ledger.containers import AppContainer
from coaching_ledger.domain.errors import (
    CoachingError,
    ConcurrentUpdate,
    InsufficientCredits,
    InvalidCreditAmount,
    InvalidFollowUpState,
    PreconditionFailed,
    SessionNotFound,
)
from coaching_ledger.domain.sessions import Feedback

_ERROR_STATUS: dict[type[CoachingError], int] = {
    InsufficientCredits: status.HTTP_402_PAYMENT_REQUIRED,
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    PreconditionFailed: status.HTTP_409_CONFLICT,
    InvalidFollowUpState: status.HTTP_409_CONFLICT,
    ConcurrentUpdate: status.HTTP_409_CONFLICT,
    InvalidCreditAmount: 422,
}


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    app = FastAPI()
    app.state.container = container

    app.include_router(admin_router)

    @app.exception_handler(CoachingError)
    async def coaching_error_handler(
        request: Request, exc: CoachingError
    ) -> JSONResponse:
        status_code = _ERROR_STATUS.get(type(exc), status.HTTP_400_BAD_REQUEST)
        logger.info(
            "%s %s -> %s: %s", request.method, request.url.path, status_code, exc
        )
        return JSONResponse(
            status_code=status_code,
            content={"error": type(exc).__name__, "detail": str(exc)},
        )

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Simple health check endpoint."""
        return {"status": "ok"}

    @app.post("/sessions", status_code=status.HTTP_201_CREATED)
    async def create_session(
        body: CreateSessionRequest, request: Request
    ) -> dict[str, object]:
        """Open a coaching session and charge the student."""
        state_container: AppContainer = request.app.state.container
        session = state_container.coaching_service.create_session(
            student_id=body.student_id,
            mentor_id=body.mentor_id,
            original_image_url=body.original_image_url,
            initial_question=body.initial_question,
            cost=body.cost or state_container.settings.default_session_cost,
        )
        return {"session": asdict(session)}

    @app.get("/sessions/{session_id}")
    async def get_session(session_id: UUID, request: Request) -> dict[str, object]:
        """Return a session with any lapsed deadline applied."""
        state_container: AppContainer = request.app.state.container
        session = state_container.coaching_service.get_session(session_id)
        return {"session": asdict(session)}

    @app.post("/sessions/{session_id}/feedback")
    async def submit_feedback(
        session_id: UUID, body: FeedbackRequest, request: Request
    ) -> dict[str, object]:
        """Record mentor feedback."""
        state_container: AppContainer = request.app.state.container
        session = state_container.coaching_service.submit_feedback(
            session_id,
            Feedback(
                feedback_image_url=body.feedback_image_url, comment=body.comment
            ),
        )
        return {"session": asdict(session)}

    @app.post("/sessions/{session_id}/follow-up")
    async def submit_follow_up(
        session_id: UUID, body: FollowUpRequest, request: Request
    ) -> dict[str, object]:
        """Record the student's follow-up question."""
        state_container: AppContainer = request.app.state.container
        session = state_container.coaching_service.submit_follow_up(
            session_id, body.question
        )
        return {"session": asdict(session)}

    @app.post("/sessions/{session_id}/follow-up/reply")
    async def reply_to_follow_up(
        session_id: UUID, body: FollowUpReplyRequest, request: Request
    ) -> dict[str, object]:
        """Record the mentor's follow-up answer."""
        state_container: AppContainer = request.app.state.container
        session = state_container.coaching_service.reply_to_follow_up(
            session_id, body.answer
        )
        return {"session": asdict(session)}

    @app.get("/users/{user_id}/sessions")
    async def list_user_sessions(user_id: str, request: Request) -> dict[str, object]:
        """Return a user's sessions, newest first."""
        state_container: AppContainer = request.app.state.container
        sessions = state_container.coaching_service.list_user_sessions(user_id)
        return {"sessions": [asdict(session) for session in sessions]}

    @app.get("/users/{user_id}/credits")
    async def get_credits(user_id: str, request: Request) -> dict[str, object]:
        """Return a user's credit balance."""
        state_container: AppContainer = request.app.state.container
        balance = state_container.ledger_service.get_balance(user_id)
        return {"user_id": user_id, "balance": balance}

    @app.get("/users/{user_id}/transactions")
    async def get_transactions(user_id: str, request: Request) -> dict[str, object]:
        """Return a user's ledger history, newest first."""
        state_container: AppContainer = request.app.state.container
        history = state_container.ledger_service.get_transaction_history(user_id)
        return {"transactions": [asdict(txn) for txn in history]}

    return app
