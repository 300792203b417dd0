from fastapi import APIRouter, Depends
from typing import List, Optional
from uuid import UUID
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..db import get_async_session
from ..dependencies import current_student, current_staff
from ..models.exam_model import Exam, ExamQuestion
from ..models.exam_submission_model import ExamSubmission
from ..models.teaching_model import TeachingAssignment
from ..models.user_model import UserRole
from ..schemas.exam_submission_schema import (
    AnswerRead,
    AnswersPayload,
    GradePayload,
    StartPayload,
    SubmissionDetail,
    SubmissionRead,
    SubmitPayload,
    SweepResult,
    ViolationPayload,
    ViolationResult,
)
from ..security import current_active_user
from ..services.exam_service import _question_to_dict, _sanitize_question, get_managed_exam
from ..services import submission_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/exam-submissions", tags=["Exam Submissions"])


def _answer_pairs(items) -> list:
    return [(a.question_id, a.answer) for a in items or []]


@router.get("", response_model=List[SubmissionRead])
async def list_submissions(
    exam_id: Optional[UUID] = None,
    student_id: Optional[UUID] = None,
    session: AsyncSession = Depends(get_async_session),
    user=Depends(current_active_user),
):
    """
    List exam attempts, newest first.
    - Teachers/admins viewing one exam first close its overdue attempts (lazy sweep).
    - Teachers only see attempts on exams of their own teaching assignments.
    - Students only ever see their own attempts, whatever student_id they pass.
    """
    q = select(ExamSubmission).order_by(ExamSubmission.created_at.desc())

    if user.role == UserRole.STUDENT:
        q = q.where(ExamSubmission.student_id == user.id)
        if exam_id:
            q = q.where(ExamSubmission.exam_id == exam_id)
    else:
        if exam_id:
            exam = await get_managed_exam(session, exam_id, user)
            await submission_service.sweep_expired_attempts(session, exam.id)
            q = q.where(ExamSubmission.exam_id == exam_id)
        elif user.role != UserRole.ADMIN:
            q = q.join(Exam, Exam.id == ExamSubmission.exam_id).join(
                TeachingAssignment, TeachingAssignment.id == Exam.teaching_assignment_id
            ).where(TeachingAssignment.teacher_id == user.id)
        if student_id:
            q = q.where(ExamSubmission.student_id == student_id)

    res = await session.execute(q)
    return res.scalars().all()


@router.post("", response_model=SubmissionRead)
async def start_exam(payload: StartPayload, user=Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    # creates the attempt, or returns the one already in progress
    return await submission_service.start_attempt(session, payload.exam_id, user.id)


@router.post("/sweep", response_model=SweepResult)
async def sweep_exam(exam_id: UUID, user=Depends(current_staff), session: AsyncSession = Depends(get_async_session)):
    exam = await get_managed_exam(session, exam_id, user)
    closed = await submission_service.sweep_expired_attempts(session, exam.id)
    return {"closed_count": closed}


@router.get("/{submission_id}", response_model=SubmissionDetail)
async def get_submission_detail(submission_id: UUID, user=Depends(current_active_user), session: AsyncSession = Depends(get_async_session)):
    if user.role == UserRole.STUDENT:
        submission = await submission_service.get_submission(session, submission_id, user.id)
        to_dict = _sanitize_question
    else:
        submission = await submission_service.get_submission(session, submission_id)
        await get_managed_exam(session, submission.exam_id, user)
        to_dict = _question_to_dict

    res = await session.execute(select(ExamQuestion).where(ExamQuestion.exam_id == submission.exam_id))
    qmap = {str(q.id): q for q in res.scalars().all()}
    # frozen order; questions deleted since are skipped, questions added since are not part of this attempt
    questions = [to_dict(qmap[qid]) for qid in submission.question_order or [] if qid in qmap]

    answers = [AnswerRead.model_validate(a) for a in await submission_service.get_answers(session, submission.id)]
    if user.role == UserRole.STUDENT and not submission.is_submitted:
        # no correctness feedback while the attempt is running
        answers = [a.model_copy(update={"is_correct": None, "points_earned": None}) for a in answers]

    out = SubmissionRead.model_validate(submission).model_dump()
    out["answers"] = answers
    out["questions"] = questions
    return out


@router.put("/{submission_id}/answers")
async def save_answers(submission_id: UUID, payload: AnswersPayload, user=Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    saved = await submission_service.record_answers(session, submission_id, user.id, _answer_pairs(payload.answers))
    return {"ok": True, "saved": saved}


@router.post("/{submission_id}/violations", response_model=ViolationResult)
async def report_violation(submission_id: UUID, payload: ViolationPayload, user=Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    outcome = await submission_service.record_violation(
        session, submission_id, user.id, payload.type, student_name=user.full_name
    )
    message = "Exam submitted automatically: too many violations" if outcome.forced else None
    return {
        "violation_count": outcome.violation_count,
        "max_violations": outcome.max_violations,
        "forced": outcome.forced,
        "message": message,
    }


@router.post("/{submission_id}/submit", response_model=SubmissionRead)
async def submit_exam(submission_id: UUID, payload: Optional[SubmitPayload] = None, user=Depends(current_student), session: AsyncSession = Depends(get_async_session)):
    answers = _answer_pairs(payload.answers) if payload else None
    return await submission_service.submit_attempt(
        session, submission_id, user.id, answers=answers, student_name=user.full_name
    )


@router.put("/{submission_id}/answers/{question_id}/grade")
async def grade_answer(submission_id: UUID, question_id: UUID, payload: GradePayload, user=Depends(current_staff), session: AsyncSession = Depends(get_async_session)):
    """Teacher grades one essay answer; a submitted attempt's total score follows."""
    submission = await submission_service.get_submission(session, submission_id)
    await get_managed_exam(session, submission.exam_id, user)

    answer = await submission_service.grade_essay_answer(session, submission, question_id, payload.points_earned)
    logger.info("Essay answer graded submission_id=%s question_id=%s by %s", str(submission.id), str(question_id), str(user.id))
    return {
        "question_id": answer.question_id,
        "points_earned": answer.points_earned,
        "total_score": submission.total_score,
        "is_submitted": submission.is_submitted,
    }
