from fastapi import Depends, HTTPException, status, Request
from sqlalchemy.ext.asyncio import AsyncSession
from exam_scheduler.models.user_model import User, UserRole
from .db import get_async_session
from .security import current_active_user
from .services.errors import SchedulerError, NotFoundError, SessionConflictError, SessionValidationError
from .services.session_service import ExamSessionManager
from .services.session_store import SessionStore


def current_user_has_role(required_role: UserRole):
    async def current_user_contains_role(user: User = Depends(current_active_user)):
        if user.role != required_role:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Operation not permitted",
            )
        return user
    return current_user_contains_role


current_admin = current_user_has_role(UserRole.ADMIN)
current_student = current_user_has_role(UserRole.STUDENT)


async def users_router_permission(request: Request, user: User = Depends(current_active_user)):
    method = request.method.upper()
    # Admin-only methods
    if method in ("POST", "PUT", "PATCH", "DELETE"):
        if user.role != UserRole.ADMIN:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Operation not permitted")
    return True


async def get_session_store(session: AsyncSession = Depends(get_async_session)) -> SessionStore:
    return SessionStore(session)


async def get_session_manager(store: SessionStore = Depends(get_session_store)) -> ExamSessionManager:
    return ExamSessionManager(store)


def scheduler_http_error(e: SchedulerError) -> HTTPException:
    """Map the session core's error taxonomy onto HTTP status codes."""
    if isinstance(e, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)
    if isinstance(e, SessionConflictError):
        # client should refetch state through verify, not retry blindly
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail={"message": e.message, "id": 0})
    if isinstance(e, SessionValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=e.message)
