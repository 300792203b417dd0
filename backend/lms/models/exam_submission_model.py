from lms.db import Base
from sqlalchemy import Column, Integer, Boolean, Text, DateTime, UniqueConstraint, Uuid, ForeignKey
from sqlalchemy.ext.mutable import MutableList
import uuid
from datetime import datetime

from .exam_model import JSONType


class ExamSubmission(Base):
    """One student's attempt at one exam.

    ``question_order`` and ``max_score`` are captured when the attempt starts and
    never recomputed. Once ``is_submitted`` is true the row is terminal.
    """
    __tablename__ = "exam_submissions"
    __table_args__ = (UniqueConstraint('exam_id', 'student_id', name='uq_exam_submission_student'),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)

    exam_id = Column(Uuid, ForeignKey("exams.id"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False)

    # question ids as strings, in the order this student sees them
    question_order = Column(MutableList.as_mutable(JSONType), nullable=False, default=list)
    started_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    submitted_at = Column(DateTime, nullable=True)
    is_submitted = Column(Boolean, nullable=False, default=False)
    total_score = Column(Integer, nullable=False, default=0)
    max_score = Column(Integer, nullable=False, default=0)

    violation_count = Column(Integer, nullable=False, default=0)
    # append-only list of {"type": ..., "timestamp": ...}
    violations_log = Column(MutableList.as_mutable(JSONType), nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)


class ExamAnswer(Base):
    __tablename__ = "exam_answers"
    __table_args__ = (UniqueConstraint('submission_id', 'question_id', name='uq_exam_answer_question'),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    submission_id = Column(Uuid, ForeignKey("exam_submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    question_id = Column(Uuid, ForeignKey("exam_questions.id"), nullable=False)

    answer = Column(Text, nullable=True)
    # None for essay answers until a teacher grades them
    is_correct = Column(Boolean, nullable=True)
    points_earned = Column(Integer, nullable=True)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
