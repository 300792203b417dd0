from typing import List
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import datetime, timezone

from ..exceptions import ExamNotFound, NotPermitted
from ..models.exam_model import Exam, ExamQuestion
from ..models.exam_submission_model import ExamSubmission
from ..models.teaching_model import TeachingAssignment
from ..models.user_model import UserRole


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp is stored in."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _to_naive_utc(dt: datetime | None) -> datetime | None:
    """Convert an aware datetime to naive UTC (remove tzinfo). If already naive, assume UTC and return as-is.
    Returns None if input is None.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        # assume naive datetimes are already UTC
        return dt
    # convert to UTC and drop tzinfo
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


async def get_exam(session: AsyncSession, exam_id: UUID) -> Exam:
    res = await session.execute(select(Exam).where(Exam.id == exam_id))
    exam = res.scalar_one_or_none()
    if not exam:
        raise ExamNotFound()
    return exam


async def get_exam_teacher_id(session: AsyncSession, exam: Exam) -> UUID | None:
    res = await session.execute(
        select(TeachingAssignment.teacher_id).where(TeachingAssignment.id == exam.teaching_assignment_id)
    )
    return res.scalar_one_or_none()


async def ensure_can_manage(session: AsyncSession, exam: Exam, user) -> None:
    # admins manage every exam, teachers only those of their own teaching assignments
    if user.role == UserRole.ADMIN:
        return
    if user.role != UserRole.TEACHER or await get_exam_teacher_id(session, exam) != user.id:
        raise NotPermitted()


async def get_managed_exam(session: AsyncSession, exam_id: UUID, user) -> Exam:
    exam = await get_exam(session, exam_id)
    await ensure_can_manage(session, exam, user)
    return exam


async def ensure_owns_assignment(session: AsyncSession, teaching_assignment_id: UUID, user) -> None:
    res = await session.execute(select(TeachingAssignment).where(TeachingAssignment.id == teaching_assignment_id))
    assignment = res.scalar_one_or_none()
    if not assignment:
        raise NotPermitted("Teaching assignment not found")
    if user.role != UserRole.ADMIN and assignment.teacher_id != user.id:
        raise NotPermitted()


async def get_ordered_questions(session: AsyncSession, exam_id: UUID) -> List[ExamQuestion]:
    stmt = select(ExamQuestion).where(ExamQuestion.exam_id == exam_id).order_by(ExamQuestion.order_index)
    res = await session.execute(stmt)
    return list(res.scalars().all())


async def get_next_order_index(session: AsyncSession, exam_id: UUID) -> int:
    res = await session.execute(select(func.max(ExamQuestion.order_index)).where(ExamQuestion.exam_id == exam_id))
    current = res.scalar_one_or_none()
    return 0 if current is None else current + 1


async def exam_has_submissions(session: AsyncSession, exam_id: UUID) -> bool:
    res = await session.execute(select(func.count()).select_from(ExamSubmission).where(ExamSubmission.exam_id == exam_id))
    return (res.scalar_one() or 0) > 0


async def count_questions(session: AsyncSession, exam_id: UUID) -> int:
    res = await session.execute(select(func.count()).select_from(ExamQuestion).where(ExamQuestion.exam_id == exam_id))
    return res.scalar_one() or 0


def _exam_to_read_dict(exam: Exam, question_count: int) -> dict:
    return {
        "id": exam.id,
        "teaching_assignment_id": exam.teaching_assignment_id,
        "title": exam.title,
        "description": exam.description,
        "start_time": exam.start_time,
        "duration_minutes": exam.duration_minutes,
        "is_randomized": exam.is_randomized,
        "is_active": exam.is_active,
        "max_violations": exam.max_violations,
        "question_count": question_count,
    }


def _question_to_dict(q: ExamQuestion) -> dict:
    return {
        'id': q.id,
        'exam_id': q.exam_id,
        'question_text': q.question_text,
        'question_type': q.question_type,
        'options': q.options,
        'correct_answer': q.correct_answer,
        'points': q.points,
        'order_index': q.order_index,
        'image_url': q.image_url,
    }


def _sanitize_question(q: ExamQuestion) -> dict:
    # remove correct_answer field to prevent leaking
    out = _question_to_dict(q)
    out.pop('correct_answer')
    return out
