from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from fastapi import Depends
from dotenv import load_dotenv
import os
from sqlalchemy.orm import DeclarativeBase

load_dotenv()
SECRET = os.getenv("SECRET")
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite+aiosqlite:///./lms.db")
SCHEMA_SEARCH_PATH = os.getenv("SCHEMA_SEARCH_PATH")
SQL_ECHO = os.getenv("SQL_ECHO", "").lower() in ("1", "true", "yes")
# 0 keeps the lazy, read-triggered sweep only
EXAM_SWEEP_INTERVAL_SECONDS = int(os.getenv("EXAM_SWEEP_INTERVAL_SECONDS", "0") or 0)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


class Base(DeclarativeBase):
    pass


connect_args = {}
if SCHEMA_SEARCH_PATH:
    # asyncpg only
    connect_args["server_settings"] = {"search_path": SCHEMA_SEARCH_PATH}

engine = create_async_engine(DATABASE_URL, connect_args=connect_args, echo=SQL_ECHO)
async_session_maker = async_sessionmaker(engine, expire_on_commit=False)


async def create_db_and_tables():

    from lms.models import (  # noqa: F401
        user_model,
        teaching_model,
        exam_model,
        exam_submission_model,
        notification_model,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_async_session() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_maker() as session:
        yield session


async def get_user_db(session: AsyncSession = Depends(get_async_session)):
    from lms.models.user_model import User
    from fastapi_users.db import SQLAlchemyUserDatabase
    yield SQLAlchemyUserDatabase(session, User)
