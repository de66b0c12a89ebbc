"""
用户与学生档案模型模块 - SQLModel 版本

同一名学生可能同时存在两条记录：
- User: 通用账号（角色、邮箱、粗粒度院系/学期代码）
- StudentProfile: 详细档案（学号、院系、学期、绩点等），按邮箱关联
"""
from typing import Optional
from enum import Enum
from sqlmodel import Field

from app.core.security import Role
from .base import SQLModelBase, TimestampMixin, IDMixin


# ==================== 表模型 ====================

class User(TimestampMixin, IDMixin, SQLModelBase, table=True):
    """通用账号表模型"""
    __tablename__ = "users"

    name: str = Field(..., max_length=100, description="姓名")
    email: str = Field(..., max_length=255, unique=True, index=True, description="邮箱")
    role: str = Field(Role.STUDENT.value, max_length=20, index=True, description="角色")
    is_active: bool = Field(default=True, description="是否启用")

    # 学生账号的粗粒度字段（代码形式，如 computer-science / 7）
    department: Optional[str] = Field(None, max_length=100, description="院系代码")
    semester: Optional[str] = Field(None, max_length=10, description="学期代码")
    registration_number: Optional[str] = Field(None, max_length=50, description="注册号")

    # 企业账号
    company_name: Optional[str] = Field(None, max_length=200, description="企业名称")

    def __repr__(self) -> str:
        return f"<User(id={self.id}, role={self.role})>"


class StudentProfile(TimestampMixin, IDMixin, SQLModelBase, table=True):
    """学生详细档案表模型"""
    __tablename__ = "students"

    full_name: str = Field(..., max_length=100, description="姓名")
    email: str = Field(..., max_length=255, unique=True, index=True, description="邮箱")
    roll_number: Optional[str] = Field(None, max_length=50, index=True, description="学号")
    department: Optional[str] = Field(None, max_length=100, description="院系")
    semester: Optional[str] = Field(None, max_length=10, description="学期")
    cgpa: Optional[float] = Field(None, ge=0, le=4, description="绩点")
    phone_number: Optional[str] = Field(None, max_length=30, description="联系电话")
    selected_supervisor_id: Optional[str] = Field(None, max_length=36, description="所选导师ID")
    is_active: bool = Field(default=True, description="是否启用")

    def __repr__(self) -> str:
        return f"<StudentProfile(id={self.id}, email={self.email})>"


# ==================== 视图 Schema ====================

class IdentitySource(str, Enum):
    """学生身份来源"""
    PROFILE = "profile"
    ACCOUNT = "account"


class StudentView(SQLModelBase):
    """
    学生身份的统一视图

    来自详细档案时原样映射；来自通用账号时由 IdentityResolver 合成，不落库
    """
    id: str
    full_name: str
    email: str
    roll_number: Optional[str] = None
    department: Optional[str] = None
    semester: Optional[str] = None
    cgpa: Optional[float] = None
    phone_number: Optional[str] = None
    source: IdentitySource = IdentitySource.PROFILE
