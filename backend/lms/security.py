import logging
import uuid
from typing import Optional

from fastapi import Depends, Request
from fastapi_users import BaseUserManager, FastAPIUsers, UUIDIDMixin
from fastapi_users.authentication import (
    AuthenticationBackend,
    BearerTransport,
    CookieTransport,
    JWTStrategy,
)

from .db import SECRET, get_user_db
from .models.user_model import User

logger = logging.getLogger(__name__)

SESSION_LIFETIME_SECONDS = 7 * 24 * 3600


class UserManager(UUIDIDMixin, BaseUserManager[User, uuid.UUID]):
    reset_password_token_secret = SECRET
    verification_token_secret = SECRET

    async def on_after_register(self, user: User, request: Optional[Request] = None):
        logger.info("User %s registered with role %s", str(user.id), user.role)


async def get_user_manager(user_db=Depends(get_user_db)):
    yield UserManager(user_db)


def get_jwt_strategy() -> JWTStrategy:
    return JWTStrategy(secret=SECRET, lifetime_seconds=SESSION_LIFETIME_SECONDS)


bearer_transport = BearerTransport(tokenUrl="auth/jwt/login")
# the browser front-end keeps the token in this cookie
cookie_transport = CookieTransport(cookie_name="session_token", cookie_max_age=SESSION_LIFETIME_SECONDS)

auth_backend = AuthenticationBackend(name="jwt", transport=bearer_transport, get_strategy=get_jwt_strategy)
cookie_auth_backend = AuthenticationBackend(name="cookie", transport=cookie_transport, get_strategy=get_jwt_strategy)

app_users = FastAPIUsers[User, uuid.UUID](get_user_manager, [auth_backend, cookie_auth_backend])

current_active_user = app_users.current_user(active=True)
