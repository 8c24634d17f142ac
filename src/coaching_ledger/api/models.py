"""Pydantic models for coaching API payloads."""

from pydantic import BaseModel, Field


class CreateSessionRequest(BaseModel):
    """Student's request for mentor feedback."""

    student_id: str = Field(min_length=1)
    mentor_id: str = Field(min_length=1)
    original_image_url: str = Field(min_length=1)
    initial_question: str = Field(min_length=10, max_length=500)
    cost: int | None = Field(default=None, gt=0)


class FeedbackRequest(BaseModel):
    """Mentor's annotated feedback."""

    feedback_image_url: str = Field(min_length=1)
    comment: str = Field(min_length=10, max_length=500)


class FollowUpRequest(BaseModel):
    """Student's follow-up question."""

    question: str = Field(min_length=10, max_length=300)


class FollowUpReplyRequest(BaseModel):
    """Mentor's answer to the follow-up question."""

    answer: str = Field(min_length=10)


class GrantCreditsRequest(BaseModel):
    """Admin credit grant."""

    amount: int = Field(gt=0)
