"""
安全模块

JWT 令牌签发/校验与角色定义
"""
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Optional

from jose import JWTError, jwt
from pydantic import BaseModel

from .config import settings
from .exceptions import AuthenticationException


class Role(str, Enum):
    """用户角色"""
    STUDENT = "student"
    SUPERVISOR = "supervisor"
    COMPANY = "company"
    ADMIN = "admin"


class Principal(BaseModel):
    """当前请求的调用者身份"""
    id: str
    role: Role
    name: str = ""
    email: str = ""


def create_access_token(
    subject: str,
    role: Role | str,
    expires_delta: Optional[timedelta] = None
) -> str:
    """签发访问令牌"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
    )
    to_encode = {
        "sub": subject,
        "role": Role(role).value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def decode_token(token: str) -> dict:
    """解码并校验令牌"""
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        raise AuthenticationException("Could not validate credentials")

    if payload.get("type") != "access" or not payload.get("sub"):
        raise AuthenticationException("Could not validate credentials")
    return payload
