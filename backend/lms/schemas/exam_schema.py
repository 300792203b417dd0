from pydantic import BaseModel, validator
from typing import Optional
from datetime import datetime
from uuid import UUID

from ..models.exam_model import DEFAULT_MAX_VIOLATIONS


class ExamCreate(BaseModel):
    teaching_assignment_id: UUID
    title: str
    description: Optional[str] = None
    start_time: datetime
    duration_minutes: int
    is_randomized: bool = True
    max_violations: int = DEFAULT_MAX_VIOLATIONS

    @validator("duration_minutes")
    def duration_must_be_positive(cls, v):
        if v is None or v <= 0:
            raise ValueError("duration_minutes must be a positive integer (minutes)")
        return v

    @validator("max_violations")
    def max_violations_must_be_positive(cls, v):
        if v is None or v < 1:
            raise ValueError("max_violations must be at least 1")
        return v


class ExamUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    start_time: Optional[datetime] = None
    duration_minutes: Optional[int] = None
    is_randomized: Optional[bool] = None
    is_active: Optional[bool] = None
    max_violations: Optional[int] = None

    @validator("duration_minutes")
    def duration_must_be_positive(cls, v):
        if v is not None and v <= 0:
            raise ValueError("duration_minutes must be a positive integer (minutes)")
        return v

    @validator("max_violations")
    def max_violations_must_be_positive(cls, v):
        if v is not None and v < 1:
            raise ValueError("max_violations must be at least 1")
        return v


class ExamRead(BaseModel):
    id: UUID
    teaching_assignment_id: UUID
    title: str
    description: Optional[str] = None
    start_time: datetime
    duration_minutes: int
    is_randomized: bool
    is_active: bool
    max_violations: int
    question_count: int = 0

    class Config:
        from_attributes = True
