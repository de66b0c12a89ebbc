"""
API 依赖

认证（Bearer JWT）、角色校验，以及各服务对象的构造
"""
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import get_db
from app.core.exceptions import (
    AuthenticationException,
    AuthorizationException,
    NotFoundException,
)
from app.core.security import Principal, Role, decode_token
from app.crud import user_crud
from app.services.email import EmailService, get_email_service
from app.services.evaluation import EvaluationService
from app.services.identity import IdentityResolver
from app.services.release import ReleaseGate
from app.services.workflow import ApplicationWorkflowEngine

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """
    从 Bearer 令牌解析当前调用者

    sub 优先按通用账号查找；学生也可能只有详细档案，此时经 IdentityResolver 回退。
    """
    if credentials is None or not credentials.credentials:
        raise AuthenticationException("Not authenticated")

    payload = decode_token(credentials.credentials)
    subject = payload["sub"]

    account = await user_crud.get(db, subject)
    if account:
        if not account.is_active:
            raise AuthorizationException("Inactive user")
        return Principal(id=account.id, role=account.role, name=account.name, email=account.email)

    if payload.get("role") == Role.STUDENT.value:
        try:
            student = await IdentityResolver(db).resolve(subject)
        except NotFoundException:
            raise AuthenticationException("Could not validate credentials")
        return Principal(id=student.id, role=Role.STUDENT, name=student.full_name, email=student.email)

    raise AuthenticationException("Could not validate credentials")


def require_role(*roles: Role):
    """限定调用者角色的依赖"""

    async def checker(current_user: Principal = Depends(get_current_user)) -> Principal:
        if current_user.role not in roles:
            allowed = ", ".join(role.value for role in roles)
            raise AuthorizationException(f"Access denied. {allowed} role required.")
        return current_user

    return checker


def get_workflow_engine(
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> ApplicationWorkflowEngine:
    return ApplicationWorkflowEngine(db, email_service)


def get_release_gate(
    db: AsyncSession = Depends(get_db),
    email_service: EmailService = Depends(get_email_service),
) -> ReleaseGate:
    return ReleaseGate(db, email_service)


def get_evaluation_service(db: AsyncSession = Depends(get_db)) -> EvaluationService:
    return EvaluationService(db)
