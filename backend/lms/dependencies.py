from fastapi import Depends, HTTPException, status, Request
from lms.models.user_model import User, UserRole
from .security import current_active_user


def current_user_has_role(*allowed_roles: UserRole):
    async def current_user_contains_role(user: User = Depends(current_active_user)):
        if user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted",
            )
        return user
    return current_user_contains_role


current_admin = current_user_has_role(UserRole.ADMIN)
current_student = current_user_has_role(UserRole.STUDENT)
# teachers manage their own exams, admins manage all of them
current_staff = current_user_has_role(UserRole.ADMIN, UserRole.TEACHER)


async def users_router_permission(request: Request, user: User = Depends(current_active_user)):
    method = request.method.upper()
    # Admin-only methods
    if method in ("POST", "PUT", "PATCH", "DELETE"):
        if user.role != UserRole.ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")
    return True
