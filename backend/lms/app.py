from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi import Depends

from .routers import auth, exam_routers, question_routers, submission_routers
from contextlib import asynccontextmanager, suppress
from .db import create_db_and_tables, async_session_maker, EXAM_SWEEP_INTERVAL_SECONDS, LOG_LEVEL
from .exceptions import LMSError
from .security import auth_backend, cookie_auth_backend, app_users
from .dependencies import users_router_permission, current_admin
from .schemas.user_schema import UserCreate, UserRead, UserUpdate
from .services.submission_service import sweep_all_expired_attempts

import asyncio
import logging

logger = logging.getLogger(__name__)
logging.getLogger("lms").setLevel(LOG_LEVEL)


async def sweep_periodically(interval: int):
    """Close overdue attempts on a timer, on top of the sweep done when teachers list submissions."""
    while True:
        await asyncio.sleep(interval)
        try:
            async with async_session_maker() as session:
                await sweep_all_expired_attempts(session)
        except Exception:
            logger.exception("Background exam sweep failed")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # run once when app starts. Make DB, start the optional sweep timer.
    await create_db_and_tables()
    sweeper = None
    if EXAM_SWEEP_INTERVAL_SECONDS > 0:
        sweeper = asyncio.create_task(sweep_periodically(EXAM_SWEEP_INTERVAL_SECONDS))
    yield
    if sweeper:
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper

app = FastAPI(lifespan=lifespan)


@app.exception_handler(LMSError)
async def lms_error_handler(request: Request, exc: LMSError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


# NOTE: include the exact origins used by the frontend dev server (no trailing slash)
origins = [
    "http://localhost:5173",
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,  # which sites can call this API
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Attach users router with small permission check. This router provides /users and /users/me
app.include_router(
    app_users.get_users_router(UserRead, UserUpdate),
    prefix="/users",
    tags=["users"],
    dependencies=[Depends(users_router_permission)],
)


app.include_router(exam_routers.router, prefix="/api")
app.include_router(question_routers.router, prefix="/api")
app.include_router(submission_routers.router, prefix="/api")

# Auth routers
app.include_router(app_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"])
app.include_router(app_users.get_auth_router(cookie_auth_backend), prefix="/auth/cookie", tags=["auth"])
app.include_router(auth.router)
# accounts are created by the school administration, not by self sign-up
app.include_router(
    app_users.get_register_router(UserRead, UserCreate),
    prefix="/auth",
    tags=["auth"],
    dependencies=[Depends(current_admin)],
)
