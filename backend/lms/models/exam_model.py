from lms.db import Base
from sqlalchemy import String, Text


"""
Exams and ExamQuestions
| Column | Type | Notes |
| :--- | :--- | :--- |
| `id` | UUID | Primary Key |
| `teaching_assignment_id` | UUID | FK -> TeachingAssignments |
| `title` | VARCHAR | |
| `start_time` | TIMESTAMP | naive UTC |
| `duration_minutes` | INTEGER | |
| `is_randomized` | BOOLEAN | Default `true` |
| `is_active` | BOOLEAN | Default `false`, students can only start active exams |
| `max_violations` | INTEGER | Default `3` |

### ExamQuestions
| Column | Type | Notes |
| :--- | :--- | :--- |
| `exam_id` | UUID | FK -> Exams |
| `question_type` | ENUM | MULTIPLE_CHOICE / ESSAY |
| `options` | JSON | list of strings, multiple choice only |
| `correct_answer` | VARCHAR | letter code ("A", "B", ...), multiple choice only |
| `points` | INTEGER | Default `1` |
| `order_index` | INTEGER | natural order in the exam |
"""

from sqlalchemy import Column, Boolean, Integer, DateTime, ForeignKey, Uuid, JSON, Enum as SAEnum
from sqlalchemy.dialects.postgresql import JSONB
from datetime import datetime
import uuid
import enum


DEFAULT_MAX_VIOLATIONS = 3
DEFAULT_QUESTION_POINTS = 1

JSONType = JSON().with_variant(JSONB(), "postgresql")


class QuestionType(str, enum.Enum):
    MULTIPLE_CHOICE = "MULTIPLE_CHOICE"
    ESSAY = "ESSAY"


class Exam(Base):
    __tablename__ = "exams"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    teaching_assignment_id = Column(Uuid, ForeignKey("teaching_assignments.id"), nullable=False)
    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    start_time = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False)
    is_randomized = Column(Boolean, default=True, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    max_violations = Column(Integer, default=DEFAULT_MAX_VIOLATIONS, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class ExamQuestion(Base):
    __tablename__ = "exam_questions"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    exam_id = Column(Uuid, ForeignKey("exams.id", ondelete="CASCADE"), nullable=False, index=True)
    question_text = Column(Text, nullable=False)
    question_type = Column(SAEnum(QuestionType), default=QuestionType.MULTIPLE_CHOICE, nullable=False)
    options = Column(JSONType, nullable=True)
    correct_answer = Column(String(1), nullable=True)
    points = Column(Integer, default=DEFAULT_QUESTION_POINTS, nullable=False)
    order_index = Column(Integer, nullable=False, default=0)
    image_url = Column(String, nullable=True)
