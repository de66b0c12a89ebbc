"""
SQLModel 基类模块

定义通用字段和混入类
"""
import uuid
from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


def utc_now() -> datetime:
    """当前 UTC 时间"""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class SQLModelBase(SQLModel):
    """
    SQLModel 基类配置

    所有 Schema 类都应继承此类
    """
    model_config = {
        "from_attributes": True,
        "populate_by_name": True,
        "str_strip_whitespace": True,
    }


class TimestampMixin(SQLModel):
    """时间戳混入类 - 用于表模型"""
    created_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        description="创建时间"
    )
    updated_at: datetime = Field(
        default_factory=utc_now,
        nullable=False,
        description="更新时间"
    )


class IDMixin(SQLModel):
    """ID 混入类 - 用于表模型"""
    id: str = Field(
        default_factory=new_id,
        primary_key=True,
        max_length=36,
        description="主键ID"
    )


class TimestampResponse(SQLModelBase):
    """带时间戳的响应基类"""
    id: str
    created_at: datetime
    updated_at: datetime
