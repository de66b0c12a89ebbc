"""
岗位模型模块 - SQLModel 版本

企业发布的实习岗位
"""
from typing import Optional
from enum import Enum
from sqlmodel import Field

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse


class JobStatus(str, Enum):
    """岗位状态"""
    ACTIVE = "active"
    CLOSED = "closed"


# ==================== 基础字段定义 ====================

class JobBase(SQLModelBase):
    """岗位基础字段"""
    title: str = Field(..., min_length=1, max_length=150, description="岗位名称", index=True)
    description: Optional[str] = Field(None, description="岗位描述")
    location: Optional[str] = Field(None, max_length=150, description="工作地点")
    duration: Optional[str] = Field(None, max_length=50, description="实习时长")
    application_limit: int = Field(1, ge=1, description="最多录用人数")


# ==================== 表模型 ====================

class Job(JobBase, TimestampMixin, IDMixin, table=True):
    """岗位表模型"""
    __tablename__ = "jobs"

    company_id: str = Field(..., max_length=36, index=True, description="企业账号ID")
    company_name: Optional[str] = Field(None, max_length=200, description="企业名称")
    status: str = Field(JobStatus.ACTIVE.value, max_length=20, index=True, description="岗位状态")
    hired_count: int = Field(0, ge=0, description="已录用人数")

    def __repr__(self) -> str:
        return f"<Job(id={self.id}, title={self.title})>"


# ==================== 请求 Schema ====================

class JobCreate(JobBase):
    """创建岗位请求"""
    pass


# ==================== 响应 Schema ====================

class JobResponse(TimestampResponse):
    """岗位详情响应"""
    title: str
    description: Optional[str]
    location: Optional[str]
    duration: Optional[str]
    application_limit: int
    company_id: str
    company_name: Optional[str]
    status: str
    hired_count: int
