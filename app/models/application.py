"""
实习申请模型模块 - SQLModel 版本

Application 是整个系统的核心表，连接学生、导师、企业和岗位，
并承载导师审核 → 企业审核的完整状态流转
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from enum import Enum
from pydantic import field_validator, model_validator
from sqlmodel import Field, Column, JSON

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse


class SupervisorStatus(str, Enum):
    """导师审核状态"""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CompanyStatus(str, Enum):
    """企业审核状态"""
    PENDING = "pending"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    HIRED = "hired"
    REJECTED = "rejected"


class ApplicationState(str, Enum):
    """申请整体状态（持久化为 overall_status）"""
    SUBMITTED = "submitted"
    RESUBMITTED = "resubmitted"
    SUPERVISOR_APPROVED = "supervisor_approved"
    SUPERVISOR_REJECTED = "supervisor_changes_requested"
    COMPANY_REVIEW = "company_review"
    INTERVIEW_SCHEDULED = "interview_scheduled"
    HIRED = "approved"
    REJECTED = "rejected"


TERMINAL_STATES = frozenset({ApplicationState.HIRED.value, ApplicationState.REJECTED.value})


class SupervisorDecision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class CompanyDecision(str, Enum):
    OPEN = "open"
    ACCEPT = "accept"
    REJECT = "reject"


class InterviewMode(str, Enum):
    IN_PERSON = "in-person"
    REMOTE = "remote"


# ==================== 表模型 ====================

class Application(TimestampMixin, IDMixin, SQLModelBase, table=True):
    """
    实习申请表模型（核心表）

    不变式:
    - company_status 只有在 supervisor_status=approved 时才能离开 pending
    - overall_status=approved 意味着 company_status=hired
    """
    __tablename__ = "applications"

    # ========== 关联 ==========
    student_id: str = Field(..., max_length=36, index=True, description="学生ID")
    supervisor_id: str = Field(..., max_length=36, index=True, description="导师ID")
    company_id: str = Field(..., max_length=36, index=True, description="企业ID")
    job_id: str = Field(..., max_length=36, index=True, description="岗位ID")

    # ========== 提交时的快照 ==========
    student_name: str = Field(..., max_length=100, description="学生姓名")
    student_email: str = Field(..., max_length=255, description="学生邮箱")
    student_profile: Optional[dict] = Field(default=None, sa_column=Column(JSON), description="学生档案快照")
    job_title: Optional[str] = Field(None, max_length=150, description="岗位名称")
    company_name: Optional[str] = Field(None, max_length=200, description="企业名称")
    supervisor_name: Optional[str] = Field(None, max_length=100, description="导师姓名")
    cover_letter: str = Field(..., description="求职信")
    answers: Optional[dict] = Field(default=None, sa_column=Column(JSON), description="附加问题回答")

    # ========== 状态 ==========
    supervisor_status: str = Field(SupervisorStatus.PENDING.value, max_length=20, index=True)
    company_status: str = Field(CompanyStatus.PENDING.value, max_length=30, index=True)
    overall_status: str = Field(ApplicationState.SUBMITTED.value, max_length=40, index=True)

    # ========== 审核信息 ==========
    supervisor_comments: Optional[str] = Field(None, description="导师意见")
    rejection_feedback: Optional[dict] = Field(default=None, sa_column=Column(JSON), description="驳回反馈")
    resubmission_count: int = Field(0, ge=0, description="重新提交次数")
    revisions: Optional[list] = Field(default=None, sa_column=Column(JSON), description="修订历史")
    company_comments: Optional[str] = Field(None, description="企业意见")
    interview_details: Optional[dict] = Field(default=None, sa_column=Column(JSON), description="面试安排")

    # ========== 时间线 ==========
    submitted_at: Optional[datetime] = Field(None, description="提交时间")
    supervisor_reviewed_at: Optional[datetime] = Field(None, description="导师审核时间")
    resubmitted_at: Optional[datetime] = Field(None, description="重新提交时间")
    company_reviewed_at: Optional[datetime] = Field(None, description="企业审核时间")
    interview_scheduled_at: Optional[datetime] = Field(None, description="面试安排时间")
    hired_at: Optional[datetime] = Field(None, description="录用时间")
    rejected_at: Optional[datetime] = Field(None, description="终止时间")

    # 实习起止日期（录用时由企业提供，缺失时保持为空）
    start_date: Optional[datetime] = Field(None, description="实习开始日期")
    end_date: Optional[datetime] = Field(None, description="实习结束日期")

    @property
    def is_terminal(self) -> bool:
        return self.overall_status in TERMINAL_STATES

    def __repr__(self) -> str:
        return f"<Application(id={self.id}, status={self.overall_status})>"


# ==================== 请求 Schema ====================

class ApplicationCreate(SQLModelBase):
    """提交申请请求"""
    job_id: str = Field(..., description="岗位ID")
    supervisor_id: str = Field(..., description="导师ID")
    cover_letter: str = Field(..., min_length=1, description="求职信")
    answers: Optional[Dict[str, Any]] = Field(None, description="附加问题回答")


class SupervisorReviewRequest(SQLModelBase):
    """导师审核请求"""
    decision: SupervisorDecision = Field(..., description="approve / reject")
    feedback: Optional[str] = Field(None, description="驳回原因（reject 时必填）")
    requested_fixes: List[str] = Field(default_factory=list, description="要求修改的内容")


class ResubmitRequest(SQLModelBase):
    """学生重新提交请求"""
    cover_letter: Optional[str] = Field(None, min_length=1)
    answers: Optional[Dict[str, Any]] = None
    note: str = Field("", description="修改说明")


class CompanyReviewRequest(SQLModelBase):
    """企业审核请求"""
    decision: CompanyDecision = Field(..., description="open / accept / reject")
    comments: Optional[str] = None
    start_date: Optional[datetime] = Field(None, description="实习开始日期（accept 时可填）")
    end_date: Optional[datetime] = Field(None, description="实习结束日期（accept 时可填）")

    @field_validator("start_date", "end_date")
    @classmethod
    def as_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """未带时区的日期按 UTC 处理，入库字段要求带时区"""
        if v is not None and v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v

    @model_validator(mode="after")
    def check_dates(self):
        if self.start_date and self.end_date and self.end_date < self.start_date:
            raise ValueError("end_date must not be earlier than start_date")
        return self


class InterviewScheduleRequest(SQLModelBase):
    """安排面试请求"""
    date: datetime = Field(..., description="面试时间")
    mode: InterviewMode = Field(InterviewMode.IN_PERSON, description="面试方式")
    location: str = Field("", description="地点或会议链接")
    notes: str = Field("", description="备注")


# ==================== 响应 Schema ====================

class ApplicationResponse(TimestampResponse):
    """申请详情响应"""
    student_id: str
    supervisor_id: str
    company_id: str
    job_id: str
    student_name: str
    student_email: str
    student_profile: Optional[dict] = None
    job_title: Optional[str] = None
    company_name: Optional[str] = None
    supervisor_name: Optional[str] = None
    cover_letter: str
    answers: Optional[dict] = None
    supervisor_status: str
    company_status: str
    overall_status: str
    supervisor_comments: Optional[str] = None
    rejection_feedback: Optional[dict] = None
    resubmission_count: int
    revisions: Optional[list] = None
    company_comments: Optional[str] = None
    interview_details: Optional[dict] = None
    submitted_at: Optional[datetime] = None
    supervisor_reviewed_at: Optional[datetime] = None
    resubmitted_at: Optional[datetime] = None
    company_reviewed_at: Optional[datetime] = None
    interview_scheduled_at: Optional[datetime] = None
    hired_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class ApplicationListResponse(TimestampResponse):
    """申请列表项响应"""
    student_id: str
    student_name: str
    job_id: str
    job_title: Optional[str] = None
    company_name: Optional[str] = None
    supervisor_name: Optional[str] = None
    supervisor_status: str
    company_status: str
    overall_status: str
    resubmission_count: int
