from fastapi import APIRouter, UploadFile, File, Depends, HTTPException, status
from typing import List
from uuid import UUID
import os
import zipfile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.responses import Response

from ..db import get_async_session
from ..dependencies import current_staff
from ..exceptions import ExamHasSubmissions, ExamNotFound, QuestionNotFound
from ..models.exam_model import ExamQuestion
from ..models.user_model import UserRole
from ..schemas.question_schema import QuestionsCreate, QuestionRead, QuestionPublic, QuestionUpdate, _check_choice
from ..security import current_active_user
from ..services.exam_service import (
    _question_to_dict,
    exam_has_submissions,
    get_exam,
    get_managed_exam,
    get_next_order_index,
    get_ordered_questions,
)
from ..services.excel_service import parse_excel, REQUIRED_COLUMNS

router = APIRouter(prefix="/exams/{exam_id}/questions", tags=["Exam Questions"])


async def _get_question(session: AsyncSession, exam_id: UUID, question_id: UUID) -> ExamQuestion:
    res = await session.execute(select(ExamQuestion).where(ExamQuestion.id == question_id, ExamQuestion.exam_id == exam_id))
    question = res.scalar_one_or_none()
    if not question:
        raise QuestionNotFound()
    return question


@router.get("")
async def list_questions(exam_id: UUID, session: AsyncSession = Depends(get_async_session), user=Depends(current_active_user)):
    # students only see questions of active exams, and never the correct answers
    if user.role == UserRole.STUDENT:
        exam = await get_exam(session, exam_id)
        if not exam.is_active:
            raise ExamNotFound()
        return [QuestionPublic.model_validate(q) for q in await get_ordered_questions(session, exam.id)]

    exam = await get_managed_exam(session, exam_id, user)
    return [QuestionRead.model_validate(q) for q in await get_ordered_questions(session, exam.id)]


@router.post("", response_model=List[QuestionRead], status_code=status.HTTP_201_CREATED)
async def add_questions(exam_id: UUID, payload: QuestionsCreate, session: AsyncSession = Depends(get_async_session), user=Depends(current_staff)):
    # append after the current last question; attempts already started keep their own order
    exam = await get_managed_exam(session, exam_id, user)
    start_order = await get_next_order_index(session, exam.id)

    created = []
    for idx, q in enumerate(payload.questions):
        question = ExamQuestion(
            exam_id=exam.id,
            question_text=q.question_text,
            question_type=q.question_type,
            options=q.options,
            correct_answer=q.correct_answer,
            points=q.points,
            order_index=start_order + idx,
            image_url=q.image_url,
        )
        session.add(question)
        created.append(question)

    await session.commit()
    return [_question_to_dict(q) for q in created]


@router.put("/{question_id}", response_model=QuestionRead)
async def update_question(exam_id: UUID, question_id: UUID, payload: QuestionUpdate, session: AsyncSession = Depends(get_async_session), user=Depends(current_staff)):
    exam = await get_managed_exam(session, exam_id, user)
    question = await _get_question(session, exam.id, question_id)

    if payload.question_text is not None:
        question.question_text = payload.question_text
    if payload.options is not None:
        question.options = payload.options
    if payload.correct_answer is not None:
        question.correct_answer = payload.correct_answer
    if payload.points is not None:
        question.points = payload.points
    if payload.image_url is not None:
        question.image_url = payload.image_url

    try:
        _check_choice(question.question_type, question.options, question.correct_answer)
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    await session.commit()
    await session.refresh(question)
    return _question_to_dict(question)


@router.delete("/{question_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_question(exam_id: UUID, question_id: UUID, session: AsyncSession = Depends(get_async_session), user=Depends(current_staff)):
    exam = await get_managed_exam(session, exam_id, user)
    question = await _get_question(session, exam.id, question_id)
    # started attempts reference question ids in their frozen order
    if await exam_has_submissions(session, exam.id):
        raise ExamHasSubmissions("Exam already has submissions; its questions can no longer be removed")

    await session.delete(question)
    await session.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Upload Excel & Preview
@router.post("/upload")
async def upload_excel(exam_id: UUID, file: UploadFile = File(...), session: AsyncSession = Depends(get_async_session), user=Depends(current_staff)):
    #  check file extension and return parsed preview; the client posts the preview back to add_questions
    await get_managed_exam(session, exam_id, user)

    file_extension = os.path.splitext(file.filename or "")[1]  # file extension
    allowed_extension = {".xlsx", ".xlsm", ".xls", ".xlsb", ".ods"}

    # Check if the extension is allowed
    if file_extension not in allowed_extension:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid file extension. Only {sorted(allowed_extension)} are allowed."
        )
    try:
        preview = parse_excel(file.file)
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=(
                f"Column not found :{str(e)}. Please check the column in uploaded file. "
                f"file must contain these columns {REQUIRED_COLUMNS}. Columns are case sensitive."
            ),
        )
    except (ValueError, zipfile.BadZipFile) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Could not read file: {e}")

    return {"total": len(preview), "preview": preview}
