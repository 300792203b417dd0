from fastapi import APIRouter, Depends, HTTPException, status
from typing import List, Optional
from uuid import UUID
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..db import get_async_session
from ..exceptions import ExamHasSubmissions, ExamNotFound
from ..models.exam_model import Exam, ExamQuestion
from ..models.teaching_model import TeachingAssignment
from ..models.user_model import UserRole
from ..schemas.exam_schema import ExamCreate, ExamRead, ExamUpdate
from starlette.responses import Response
from ..services.exam_service import (
    _exam_to_read_dict,
    _to_naive_utc,
    count_questions,
    ensure_owns_assignment,
    exam_has_submissions,
    get_exam,
    get_managed_exam,
)
from ..dependencies import current_staff
from ..security import current_active_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exams", tags=["Exams"])


@router.get("", response_model=List[ExamRead])
async def list_exams(
    teaching_assignment_id: Optional[UUID] = None,
    session: AsyncSession = Depends(get_async_session),
    user=Depends(current_staff),
):
    # teachers only see exams of their own teaching assignments
    count_col = (
        select(func.count(ExamQuestion.id)).where(ExamQuestion.exam_id == Exam.id).correlate(Exam).scalar_subquery()
    )
    stmt = select(Exam, count_col).order_by(Exam.created_at.desc())
    if teaching_assignment_id:
        stmt = stmt.where(Exam.teaching_assignment_id == teaching_assignment_id)
    if user.role != UserRole.ADMIN:
        stmt = stmt.join(TeachingAssignment, TeachingAssignment.id == Exam.teaching_assignment_id).where(
            TeachingAssignment.teacher_id == user.id
        )
    result = await session.execute(stmt)
    return [_exam_to_read_dict(exam, qcount) for exam, qcount in result.all()]


@router.post("", response_model=ExamRead, status_code=status.HTTP_201_CREATED)
async def create_exam(payload: ExamCreate, session: AsyncSession = Depends(get_async_session), user=Depends(current_staff)):
    await ensure_owns_assignment(session, payload.teaching_assignment_id, user)

    exam = Exam(
        teaching_assignment_id=payload.teaching_assignment_id,
        title=payload.title,
        description=payload.description,
        # Normalize times to naive UTC to match DB
        start_time=_to_naive_utc(payload.start_time),
        duration_minutes=payload.duration_minutes,
        is_randomized=payload.is_randomized,
        is_active=False,
        max_violations=payload.max_violations,
    )
    session.add(exam)
    await session.commit()
    await session.refresh(exam)
    return _exam_to_read_dict(exam, 0)


@router.get("/{exam_id}", response_model=ExamRead)
async def get_exam_detail(exam_id: UUID, session: AsyncSession = Depends(get_async_session), user=Depends(current_active_user)):
    #  get single exam. Students see only active exams.
    if user.role == UserRole.STUDENT:
        exam = await get_exam(session, exam_id)
        if not exam.is_active:
            raise ExamNotFound()
    else:
        exam = await get_managed_exam(session, exam_id, user)
    return _exam_to_read_dict(exam, await count_questions(session, exam.id))


@router.put("/{exam_id}", response_model=ExamRead)
async def update_exam(exam_id: UUID, payload: ExamUpdate, session: AsyncSession = Depends(get_async_session), user=Depends(current_staff)):
    # update only fields sent
    exam = await get_managed_exam(session, exam_id, user)

    if payload.title is not None:
        exam.title = payload.title
    if payload.description is not None:
        exam.description = payload.description
    if payload.start_time is not None:
        exam.start_time = _to_naive_utc(payload.start_time)
    if payload.duration_minutes is not None:
        exam.duration_minutes = payload.duration_minutes
    if payload.is_randomized is not None:
        exam.is_randomized = payload.is_randomized
    if payload.max_violations is not None:
        exam.max_violations = payload.max_violations
    if payload.is_active is not None:
        if payload.is_active and not await count_questions(session, exam.id):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot publish exam with no questions")
        exam.is_active = payload.is_active

    session.add(exam)
    await session.commit()
    await session.refresh(exam)
    return _exam_to_read_dict(exam, await count_questions(session, exam.id))


@router.delete("/{exam_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_exam(exam_id: UUID, session: AsyncSession = Depends(get_async_session), user=Depends(current_staff)):
    # attempts keep their scores, so an exam that has any cannot be deleted; unpublish it instead
    exam = await get_managed_exam(session, exam_id, user)
    if await exam_has_submissions(session, exam.id):
        raise ExamHasSubmissions("Exam already has submissions; unpublish it instead of deleting")

    questions = await session.execute(select(ExamQuestion).where(ExamQuestion.exam_id == exam.id))
    for question in questions.scalars().all():
        await session.delete(question)
    await session.delete(exam)
    await session.commit()
    logger.info("Exam %s deleted by %s", str(exam_id), str(user.id))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{exam_id}/publish", response_model=ExamRead)
async def publish_exam(exam_id: UUID, session: AsyncSession = Depends(get_async_session), user=Depends(current_staff)):
    # set exam.is_active = True
    exam = await get_managed_exam(session, exam_id, user)
    qcount = await count_questions(session, exam.id)
    if qcount == 0:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot publish exam with no questions")
    exam.is_active = True
    session.add(exam)
    await session.commit()
    await session.refresh(exam)
    return _exam_to_read_dict(exam, qcount)


@router.post("/{exam_id}/unpublish", response_model=ExamRead)
async def unpublish_exam(exam_id: UUID, session: AsyncSession = Depends(get_async_session), user=Depends(current_staff)):
    # set exam.is_active = False
    exam = await get_managed_exam(session, exam_id, user)
    exam.is_active = False
    session.add(exam)
    await session.commit()
    await session.refresh(exam)
    return _exam_to_read_dict(exam, await count_questions(session, exam.id))
