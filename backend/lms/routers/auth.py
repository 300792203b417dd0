#  login route for the browser front-end: returns the user and sets the session cookie
from fastapi import APIRouter, Response
from ..security import get_jwt_strategy, cookie_transport
from fastapi import Depends, HTTPException, status
from ..db import get_user_db
from ..schemas.user_schema import LoginRequest, UserRead
from fastapi_users.password import PasswordHelper

router = APIRouter(prefix='/auth', tags=['auth'])


@router.post("/login")
async def login(payload: LoginRequest, response: Response, user_db = Depends(get_user_db)):

    user = await user_db.get_by_email(payload.email)
    if not user or not user.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    pwd_helper = PasswordHelper()
    valid, new_hash = pwd_helper.verify_and_update(payload.password, user.hashed_password)

    if not valid:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid credentials")

    if new_hash:
        await user_db.update(user, {"hashed_password": new_hash})

    #  JWT token
    strategy = get_jwt_strategy()
    access_token = await strategy.write_token(user)
    response.set_cookie(
        cookie_transport.cookie_name,
        access_token,
        max_age=cookie_transport.cookie_max_age,
        httponly=cookie_transport.cookie_httponly,
        secure=cookie_transport.cookie_secure,
        samesite=cookie_transport.cookie_samesite,
    )

    return {"user": UserRead.model_validate(user), "token": access_token}
