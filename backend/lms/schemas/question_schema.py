from pydantic import BaseModel, Field, validator
from typing import List, Optional
from uuid import UUID
import string

from ..models.exam_model import QuestionType


def _check_choice(question_type, options, correct_answer):
    """
    - MULTIPLE_CHOICE: needs at least two options and a correct answer letter pointing at one of them.
    - ESSAY: options and correct answer are not used.
    """
    if question_type == QuestionType.MULTIPLE_CHOICE:
        if not options or len(options) < 2:
            raise ValueError('Multiple choice questions need at least two options.')
        if not correct_answer:
            raise ValueError('Multiple choice questions need a correct answer letter.')
        letters = string.ascii_uppercase[:len(options)]
        if correct_answer not in letters:
            raise ValueError(f'Correct answer must be one of {", ".join(letters)}.')


class QuestionCreate(BaseModel):
    question_text: str = Field(..., min_length=1)
    question_type: QuestionType = QuestionType.MULTIPLE_CHOICE
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    points: int = Field(1, gt=0, description="Points awarded for a fully correct answer.")
    image_url: Optional[str] = None

    @validator('correct_answer', always=True)
    def validate_answer_based_on_type(cls, v, values):
        _check_choice(values.get('question_type'), values.get('options'), v)
        if values.get('question_type') == QuestionType.ESSAY:
            return None
        return v


class QuestionUpdate(BaseModel):
    question_text: Optional[str] = None
    options: Optional[List[str]] = None
    correct_answer: Optional[str] = None
    points: Optional[int] = Field(None, gt=0)
    image_url: Optional[str] = None


class QuestionsCreate(BaseModel):
    questions: List[QuestionCreate] = Field(..., min_length=1)


class QuestionPublic(BaseModel):
    """What a student sees: everything but the correct answer."""
    id: UUID
    exam_id: UUID
    question_text: str
    question_type: QuestionType
    options: Optional[List[str]] = None
    points: int
    order_index: int
    image_url: Optional[str] = None

    class Config:
        from_attributes = True


class QuestionRead(QuestionPublic):
    correct_answer: Optional[str] = None
