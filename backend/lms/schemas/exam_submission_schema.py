from pydantic import BaseModel, Field
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime


class StartPayload(BaseModel):
    exam_id: UUID


class AnswerItem(BaseModel):
    question_id: UUID
    answer: Optional[str] = None


class AnswersPayload(BaseModel):
    answers: List[AnswerItem]


class SubmitPayload(BaseModel):
    # last answers from the client, saved before closing the attempt
    answers: Optional[List[AnswerItem]] = None


class ViolationPayload(BaseModel):
    type: str = Field(..., min_length=1, max_length=64)


class ViolationResult(BaseModel):
    violation_count: int
    max_violations: int
    forced: bool
    message: Optional[str] = None


class GradePayload(BaseModel):
    points_earned: int


class SweepResult(BaseModel):
    closed_count: int


class SubmissionRead(BaseModel):
    id: UUID
    exam_id: UUID
    student_id: UUID
    question_order: List[str]
    started_at: datetime
    submitted_at: Optional[datetime] = None
    is_submitted: bool
    total_score: int
    max_score: int
    violation_count: int
    violations_log: List[Dict[str, Any]] = []

    class Config:
        from_attributes = True


class AnswerRead(BaseModel):
    id: UUID
    question_id: UUID
    answer: Optional[str] = None
    is_correct: Optional[bool] = None
    points_earned: Optional[int] = None

    class Config:
        from_attributes = True


class SubmissionDetail(SubmissionRead):
    answers: List[AnswerRead] = []
    # in the attempt's frozen order; correct answers are only included for staff
    questions: List[Dict[str, Any]] = []
