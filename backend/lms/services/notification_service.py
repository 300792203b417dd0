import logging
from uuid import UUID
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.notification_model import Notification
from ..models.exam_model import Exam
from .exam_service import get_exam_teacher_id

logger = logging.getLogger(__name__)

EXAM_SUBMISSION = "EXAM_SUBMISSION"


async def notify(session: AsyncSession, user_id: UUID, kind: str, title: str, message: str | None = None, link: str | None = None) -> bool:
    """Fire-and-forget notification row. Never raises; returns False when the insert failed.

    The row is written in its own session on the same engine, so a failure here
    leaves the caller's session and its already committed work untouched.
    """
    try:
        async with AsyncSession(session.bind, expire_on_commit=False) as own:
            own.add(Notification(user_id=user_id, type=kind, title=title, message=message, link=link))
            await own.commit()
        return True
    except Exception:
        logger.exception("Error sending notification kind=%s user_id=%s", kind, str(user_id))
        return False


async def notify_exam_submission(session: AsyncSession, exam: Exam, student_name: str | None, forced: bool = False) -> bool:
    """Tell the teacher owning the exam's teaching assignment that an attempt was closed."""
    try:
        async with AsyncSession(session.bind, expire_on_commit=False) as own:
            teacher_id = await get_exam_teacher_id(own, exam)
    except Exception:
        logger.exception("Error resolving teacher for exam_id=%s", str(exam.id))
        return False
    if not teacher_id:
        return False

    name = student_name or "Student"
    if forced:
        title = "Exam submitted automatically"
        message = f'{name}\'s exam "{exam.title}" was submitted automatically after too many violations'
    else:
        title = "Exam submitted"
        message = f'{name} has submitted the exam "{exam.title}"'
    return await notify(session, teacher_id, EXAM_SUBMISSION, title, message, link=f"/dashboard/teacher/exams/{exam.id}")
