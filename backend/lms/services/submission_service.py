"""
Exam attempt lifecycle.

An attempt (``ExamSubmission`` row) is IN_PROGRESS while ``is_submitted`` is false
and SUBMITTED once it is true; SUBMITTED is terminal. Attempts are closed in three
ways, all through ``_close_submission``:

- the student submits,
- the violation count reaches the exam's ``max_violations`` (forced submission),
- the sweep finds the attempt past ``started_at + duration + GRACE_PERIOD``.

Every function takes the request's ``AsyncSession`` as its store handle and an
optional ``now`` (naive UTC) so callers and tests control the clock.
"""
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..exceptions import (
    AlreadySubmitted,
    AttemptNotInProgress,
    ExamNotActive,
    ExamNotStarted,
    InvalidGrade,
    NotPermitted,
    QuestionNotFound,
    SubmissionNotFound,
)
from ..models.exam_model import Exam, ExamQuestion, QuestionType, DEFAULT_MAX_VIOLATIONS
from ..models.exam_submission_model import ExamSubmission, ExamAnswer
from .exam_service import get_exam, get_ordered_questions, utcnow
from .grading_service import grade_answer, max_score_for, question_points
from .notification_service import notify_exam_submission

logger = logging.getLogger(__name__)

# tolerance for clock and network skew before an attempt counts as expired
GRACE_PERIOD = timedelta(minutes=2)

AnswerInput = Tuple[UUID, Optional[str]]


@dataclass
class ViolationOutcome:
    violation_count: int
    max_violations: int
    forced: bool


async def _find_attempt(session: AsyncSession, exam_id: UUID, student_id: UUID) -> ExamSubmission | None:
    q = await session.execute(
        select(ExamSubmission).where(ExamSubmission.exam_id == exam_id, ExamSubmission.student_id == student_id)
    )
    rows = q.scalars().all()
    if len(rows) > 1:
        logger.warning("Multiple ExamSubmission rows found for exam_id=%s student_id=%s, using first row", str(exam_id), str(student_id))
    return rows[0] if rows else None


async def get_submission(session: AsyncSession, submission_id: UUID, student_id: UUID | None = None) -> ExamSubmission:
    res = await session.execute(select(ExamSubmission).where(ExamSubmission.id == submission_id))
    submission = res.scalar_one_or_none()
    if not submission:
        raise SubmissionNotFound()
    if student_id is not None and submission.student_id != student_id:
        raise NotPermitted()
    return submission


async def get_answers(session: AsyncSession, submission_id: UUID) -> List[ExamAnswer]:
    res = await session.execute(select(ExamAnswer).where(ExamAnswer.submission_id == submission_id))
    return list(res.scalars().all())


async def _score(session: AsyncSession, submission_id: UUID) -> int:
    res = await session.execute(
        select(func.coalesce(func.sum(ExamAnswer.points_earned), 0)).where(ExamAnswer.submission_id == submission_id)
    )
    return int(res.scalar_one())


async def _close_submission(session: AsyncSession, submission_id: UUID, now: datetime) -> bool:
    """Score and close one attempt. Returns False if it was already closed.

    The state check is part of the UPDATE itself, so two closers racing on the
    same attempt (a submit and a sweep, two sweeps) close it exactly once.
    """
    score = await _score(session, submission_id)
    res = await session.execute(
        update(ExamSubmission)
        .where(ExamSubmission.id == submission_id, ExamSubmission.is_submitted.is_(False))
        .values(is_submitted=True, submitted_at=now, total_score=score)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    return res.rowcount == 1


async def start_attempt(session: AsyncSession, exam_id: UUID, student_id: UUID, now: datetime | None = None) -> ExamSubmission:
    now = now or utcnow()
    exam = await get_exam(session, exam_id)
    if not exam.is_active:
        raise ExamNotActive()
    if exam.start_time and now < exam.start_time:
        raise ExamNotStarted()

    exam_id = exam.id
    existing = await _find_attempt(session, exam_id, student_id)
    if existing:
        if existing.is_submitted:
            raise AlreadySubmitted()
        # resume, the order and max score stay as captured
        return existing

    questions = await get_ordered_questions(session, exam.id)
    question_order = [str(q.id) for q in questions]
    if exam.is_randomized:
        random.shuffle(question_order)

    new_submission = ExamSubmission(
        exam_id=exam.id,
        student_id=student_id,
        question_order=question_order,
        max_score=max_score_for(questions),
        started_at=now,
        is_submitted=False,
        total_score=0,
        violation_count=0,
        violations_log=[],
    )
    session.add(new_submission)
    try:
        await session.commit()
    except IntegrityError:
        # a concurrent start for the same student won the unique (exam_id, student_id) insert
        await session.rollback()
        existing = await _find_attempt(session, exam_id, student_id)
        if not existing:
            raise
        if existing.is_submitted:
            raise AlreadySubmitted()
        return existing

    logger.info("Exam attempt started exam_id=%s student_id=%s submission_id=%s", str(exam_id), str(student_id), str(new_submission.id))
    return new_submission


async def _load_questions(session: AsyncSession, exam_id: UUID, question_ids) -> dict:
    res = await session.execute(
        select(ExamQuestion).where(ExamQuestion.exam_id == exam_id, ExamQuestion.id.in_(question_ids))
    )
    return {q.id: q for q in res.scalars().all()}


async def _upsert_answers(session: AsyncSession, submission_id: UUID, answers: List[AnswerInput], qmap: dict) -> None:
    for question_id, text in answers:
        is_correct, points_earned = grade_answer(qmap[question_id], text)
        res = await session.execute(
            select(ExamAnswer).where(ExamAnswer.submission_id == submission_id, ExamAnswer.question_id == question_id)
        )
        row = res.scalar_one_or_none()
        if row is None:
            row = ExamAnswer(submission_id=submission_id, question_id=question_id)
            session.add(row)
        row.answer = text
        row.is_correct = is_correct
        row.points_earned = points_earned


async def record_answers(
    session: AsyncSession,
    submission_id: UUID,
    student_id: UUID,
    answers: Iterable[AnswerInput],
) -> int:
    """Save (question_id, answer) pairs for an in-progress attempt, last write wins per question."""
    submission = await get_submission(session, submission_id, student_id)
    if submission.is_submitted:
        raise AttemptNotInProgress()

    answers = list(answers)
    if not answers:
        return 0

    question_ids = {qid for qid, _ in answers}
    # only questions frozen into this attempt at start can be answered
    frozen = set(submission.question_order or [])
    outside = sorted(str(qid) for qid in question_ids if str(qid) not in frozen)
    if outside:
        raise QuestionNotFound(f"Question {outside[0]} is not part of this attempt")

    exam_id = submission.exam_id
    qmap = await _load_questions(session, exam_id, question_ids)
    missing = question_ids - qmap.keys()
    if missing:
        raise QuestionNotFound(f"Question {sorted(str(m) for m in missing)[0]} is not part of this exam")

    try:
        await _upsert_answers(session, submission_id, answers, qmap)
        await session.commit()
    except IntegrityError:
        # another request inserted the same (submission, question) row first; now it exists, update it
        await session.rollback()
        qmap = await _load_questions(session, exam_id, question_ids)
        await _upsert_answers(session, submission_id, answers, qmap)
        await session.commit()
    return len(answers)


async def record_violation(
    session: AsyncSession,
    submission_id: UUID,
    student_id: UUID,
    violation_type: str,
    now: datetime | None = None,
    student_name: str | None = None,
) -> ViolationOutcome:
    now = now or utcnow()
    submission = await get_submission(session, submission_id, student_id)
    if submission.is_submitted:
        raise AttemptNotInProgress()

    exam = await get_exam(session, submission.exam_id)
    max_violations = exam.max_violations or DEFAULT_MAX_VIOLATIONS

    entry = {"type": violation_type, "timestamp": now.isoformat()}
    # count is incremented in SQL so concurrent reports are not lost
    res = await session.execute(
        update(ExamSubmission)
        .where(ExamSubmission.id == submission.id, ExamSubmission.is_submitted.is_(False))
        .values(
            violation_count=ExamSubmission.violation_count + 1,
            violations_log=list(submission.violations_log or []) + [entry],
        )
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        await session.rollback()
        raise AttemptNotInProgress()
    await session.commit()
    await session.refresh(submission)

    count = submission.violation_count
    if count < max_violations:
        return ViolationOutcome(violation_count=count, max_violations=max_violations, forced=False)

    if await _close_submission(session, submission.id, now):
        logger.info("Exam attempt force-submitted submission_id=%s violations=%s", str(submission.id), count)
        await notify_exam_submission(session, exam, student_name, forced=True)
    await session.refresh(submission)
    return ViolationOutcome(violation_count=count, max_violations=max_violations, forced=True)


async def submit_attempt(
    session: AsyncSession,
    submission_id: UUID,
    student_id: UUID,
    now: datetime | None = None,
    answers: Iterable[AnswerInput] | None = None,
    student_name: str | None = None,
) -> ExamSubmission:
    now = now or utcnow()
    submission = await get_submission(session, submission_id, student_id)
    if submission.is_submitted:
        raise AlreadySubmitted()

    if answers:
        await record_answers(session, submission_id, student_id, answers)

    if not await _close_submission(session, submission_id, now):
        raise AlreadySubmitted()
    await session.refresh(submission)

    exam = await get_exam(session, submission.exam_id)
    await notify_exam_submission(session, exam, student_name)
    return submission


async def _sweep_exam(session: AsyncSession, exam_id: UUID, duration_minutes: int | None, now: datetime) -> int:
    # plain values only: a rollback below expires every ORM instance in the session
    duration = timedelta(minutes=duration_minutes or 0)
    res = await session.execute(
        select(ExamSubmission.id, ExamSubmission.started_at).where(
            ExamSubmission.exam_id == exam_id, ExamSubmission.is_submitted.is_(False)
        )
    )
    closed = 0
    for submission_id, started_at in res.all():
        if now <= started_at + duration + GRACE_PERIOD:
            continue
        try:
            if await _close_submission(session, submission_id, now):
                closed += 1
        except SQLAlchemyError:
            logger.exception("Failed to auto-close submission_id=%s for exam_id=%s", str(submission_id), str(exam_id))
            await session.rollback()
    if closed:
        logger.info("[auto-close] closed %s expired exam submissions for exam %s", closed, str(exam_id))
    return closed


async def sweep_expired_attempts(session: AsyncSession, exam_id: UUID, now: datetime | None = None) -> int:
    """Close every attempt of the exam whose time (plus grace period) ran out. Returns how many were closed."""
    now = now or utcnow()
    exam = await get_exam(session, exam_id)
    return await _sweep_exam(session, exam.id, exam.duration_minutes, now)


async def sweep_all_expired_attempts(session: AsyncSession, now: datetime | None = None) -> int:
    now = now or utcnow()
    res = await session.execute(
        select(Exam.id, Exam.duration_minutes).where(
            Exam.id.in_(select(ExamSubmission.exam_id).where(ExamSubmission.is_submitted.is_(False)))
        )
    )
    closed = 0
    for exam_id, duration_minutes in res.all():
        closed += await _sweep_exam(session, exam_id, duration_minutes, now)
    return closed


async def grade_essay_answer(session: AsyncSession, submission: ExamSubmission, question_id: UUID, points: int) -> ExamAnswer:
    """Manual grading of an essay answer on a submitted attempt; its total is recomputed."""
    # a running attempt would overwrite the grade on the student's next save
    if not submission.is_submitted:
        raise InvalidGrade("Only submitted attempts can be graded")
    res = await session.execute(
        select(ExamAnswer, ExamQuestion)
        .join(ExamQuestion, ExamQuestion.id == ExamAnswer.question_id)
        .where(ExamAnswer.submission_id == submission.id, ExamAnswer.question_id == question_id)
    )
    row = res.one_or_none()
    if row is None:
        raise QuestionNotFound("Answer not found")
    answer, question = row

    if question.question_type != QuestionType.ESSAY:
        raise InvalidGrade("Only essay answers are graded manually")
    max_points = question_points(question)
    if points < 0 or points > max_points:
        raise InvalidGrade(f"points must be between 0 and {max_points}")

    answer.points_earned = points
    await session.flush()
    submission.total_score = await _score(session, submission.id)
    await session.commit()
    return answer
