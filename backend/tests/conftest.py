import asyncio
import os
import uuid
from datetime import datetime, timedelta
from types import SimpleNamespace

# must be set before lms.db is imported
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///./test_lms.db")
os.environ.setdefault("SECRET", "test-secret")

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool

from lms.db import Base
from lms.models import user_model, teaching_model, exam_model, exam_submission_model, notification_model  # noqa: F401
from lms.models.user_model import User, UserRole
from lms.models.teaching_model import TeachingAssignment
from lms.models.exam_model import Exam, ExamQuestion, QuestionType
from lms.services.exam_service import utcnow

# fixed clock for service tests
T0 = datetime(2026, 3, 2, 8, 0, 0)


async def _create_all(engine):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture
def db(tmp_path):
    """Session factory bound to a fresh SQLite file per test."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'lms.db'}", poolclass=NullPool)
    asyncio.run(_create_all(engine))
    yield async_sessionmaker(engine, expire_on_commit=False)
    asyncio.run(engine.dispose())


def make_user(role: UserRole, name: str) -> User:
    return User(
        id=uuid.uuid4(),
        email=f"{name.lower().replace(' ', '.')}.{uuid.uuid4().hex[:6]}@school.example.com",
        hashed_password="not-used",
        full_name=name,
        role=role,
        is_active=True,
        is_superuser=False,
        is_verified=True,
    )


def mc(text, correct, points, order, options=("one", "two", "three", "four")):
    return ExamQuestion(
        question_text=text,
        question_type=QuestionType.MULTIPLE_CHOICE,
        options=list(options),
        correct_answer=correct,
        points=points,
        order_index=order,
    )


def essay(text, points, order):
    return ExamQuestion(question_text=text, question_type=QuestionType.ESSAY, points=points, order_index=order)


async def _seed(maker, start_time, questions, **exam_fields):
    async with maker() as session:
        teacher = make_user(UserRole.TEACHER, "Bu Sari")
        other_teacher = make_user(UserRole.TEACHER, "Pak Budi")
        admin = make_user(UserRole.ADMIN, "Admin")
        student = make_user(UserRole.STUDENT, "Andi")
        other_student = make_user(UserRole.STUDENT, "Rina")
        session.add_all([teacher, other_teacher, admin, student, other_student])
        await session.flush()

        assignment = TeachingAssignment(teacher_id=teacher.id, subject_name="Mathematics", class_name="X-A")
        session.add(assignment)
        await session.flush()

        fields = dict(
            title="Midterm",
            description="Chapters 1-3",
            start_time=start_time,
            duration_minutes=30,
            is_randomized=False,
            is_active=True,
            max_violations=3,
        )
        fields.update(exam_fields)
        exam = Exam(teaching_assignment_id=assignment.id, **fields)
        session.add(exam)
        await session.flush()

        for q in questions:
            q.exam_id = exam.id
        session.add_all(questions)
        await session.commit()

        return SimpleNamespace(
            teacher=teacher,
            other_teacher=other_teacher,
            admin=admin,
            student=student,
            other_student=other_student,
            assignment=assignment,
            exam=exam,
            questions=questions,
        )


@pytest.fixture
def seed(db):
    """Build a school with one exam. Defaults: two multiple-choice questions worth 5 and 10 points."""
    def _build(start_time=None, questions=None, **exam_fields):
        if questions is None:
            questions = [mc("2 + 3 = ?", "B", 5, 0), mc("Capital of Indonesia?", "A", 10, 1)]
        if start_time is None:
            start_time = T0 - timedelta(hours=1)
        return asyncio.run(_seed(db, start_time, questions, **exam_fields))
    return _build


@pytest.fixture
def run(db):
    """Run ``fn(session)`` in a fresh session and return its result."""
    def _run(fn):
        async def _inner():
            async with db() as session:
                return await fn(session)
        return asyncio.run(_inner())
    return _run


@pytest.fixture
def live_seed(seed):
    """Same as seed, but the exam window is open right now (for HTTP tests using the real clock)."""
    def _build(**kwargs):
        kwargs.setdefault("start_time", utcnow() - timedelta(minutes=5))
        return seed(**kwargs)
    return _build


@pytest.fixture
def client(db):
    from fastapi.testclient import TestClient
    from lms.app import app
    from lms.db import get_async_session

    async def override_get_async_session():
        async with db() as session:
            yield session

    app.dependency_overrides[get_async_session] = override_get_async_session
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def login_as():
    from lms.app import app
    from lms.security import current_active_user

    def _login(user):
        app.dependency_overrides[current_active_user] = lambda: user
    return _login
