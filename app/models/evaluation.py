"""
实习评价模型模块 - SQLModel 版本

- SupervisorEvaluation: 导师评价，6 项各 1-10 分，总分 6-60
- InterneeEvaluation: 企业评价，10 项各 0-4 分，总分按 max_marks（默认 40）计
"""
from datetime import datetime
from typing import Optional
from pydantic import model_validator
from sqlmodel import Field, Column, JSON, UniqueConstraint

from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse

SUPERVISOR_CRITERIA = (
    "platform_activity",
    "completion_of_internship",
    "earnings_achieved",
    "skill_development",
    "client_rating",
    "professionalism",
)

COMPANY_CRITERIA = (
    "punctuality_and_attendance",
    "ability_to_link_theory_to_practice",
    "demonstrated_critical_thinking",
    "technical_knowledge",
    "creativity_conceptual_ability",
    "ability_to_adapt_to_variety_of_tasks",
    "time_management_deadline_compliance",
    "behaved_in_professional_manner",
    "effectively_performed_assignments",
    "oral_written_communication_skills",
)

DEFAULT_COMPANY_MAX_MARKS = 40


# ==================== 表模型 ====================

class SupervisorEvaluation(TimestampMixin, IDMixin, SQLModelBase, table=True):
    """导师评价表模型，(student_id, supervisor_id) 唯一"""
    __tablename__ = "supervisor_evaluations"
    __table_args__ = (
        UniqueConstraint("student_id", "supervisor_id", name="uq_supervisor_evaluation_student"),
    )

    student_id: str = Field(..., max_length=36, index=True, description="学生ID")
    supervisor_id: str = Field(..., max_length=36, index=True, description="导师ID")
    application_id: str = Field(..., max_length=36, index=True, description="申请ID")
    student_name: str = Field(..., max_length=100)
    student_registration: Optional[str] = Field(None, max_length=50, description="学号")

    scores: dict = Field(default_factory=dict, sa_column=Column(JSON), description="各项评分")
    total_marks: int = Field(..., ge=6, le=60, description="总分（6-60）")
    comments: Optional[str] = Field(None, description="评语")

    # 成绩发布状态，仅由 ReleaseGate 修改
    final_result_sent: bool = Field(default=False, index=True, description="是否已发布最终成绩")
    final_result_sent_at: Optional[datetime] = Field(None, description="发布时间")
    final_result_sent_by: Optional[str] = Field(None, max_length=36, description="发布人")

    def __repr__(self) -> str:
        return f"<SupervisorEvaluation(id={self.id}, total={self.total_marks})>"


class InterneeEvaluation(TimestampMixin, IDMixin, SQLModelBase, table=True):
    """企业评价表模型，(intern_id, application_id) 唯一"""
    __tablename__ = "internee_evaluations"
    __table_args__ = (
        UniqueConstraint("intern_id", "application_id", name="uq_internee_evaluation_application"),
    )

    intern_id: str = Field(..., max_length=36, index=True, description="实习生ID")
    company_id: str = Field(..., max_length=36, index=True, description="企业ID")
    application_id: str = Field(..., max_length=36, index=True, description="申请ID")

    scores: dict = Field(default_factory=dict, sa_column=Column(JSON), description="各项评分")
    total_marks: int = Field(..., ge=0, description="总分")
    max_marks: Optional[int] = Field(DEFAULT_COMPANY_MAX_MARKS, ge=1, description="满分")
    comments: Optional[str] = Field(None, description="评语")

    def __repr__(self) -> str:
        return f"<InterneeEvaluation(id={self.id}, total={self.total_marks}/{self.max_marks})>"


# ==================== 请求 Schema ====================

class SupervisorEvaluationCreate(SQLModelBase):
    """导师提交评价请求"""
    application_id: str
    platform_activity: int = Field(..., ge=1, le=10)
    completion_of_internship: int = Field(..., ge=1, le=10)
    earnings_achieved: int = Field(..., ge=1, le=10)
    skill_development: int = Field(..., ge=1, le=10)
    client_rating: int = Field(..., ge=1, le=10)
    professionalism: int = Field(..., ge=1, le=10)
    comments: Optional[str] = None

    @property
    def scores(self) -> dict:
        return {name: getattr(self, name) for name in SUPERVISOR_CRITERIA}

    @property
    def total_marks(self) -> int:
        return sum(self.scores.values())


class InterneeEvaluationCreate(SQLModelBase):
    """企业提交评价请求"""
    application_id: str
    punctuality_and_attendance: int = Field(..., ge=0, le=4)
    ability_to_link_theory_to_practice: int = Field(..., ge=0, le=4)
    demonstrated_critical_thinking: int = Field(..., ge=0, le=4)
    technical_knowledge: int = Field(..., ge=0, le=4)
    creativity_conceptual_ability: int = Field(..., ge=0, le=4)
    ability_to_adapt_to_variety_of_tasks: int = Field(..., ge=0, le=4)
    time_management_deadline_compliance: int = Field(..., ge=0, le=4)
    behaved_in_professional_manner: int = Field(..., ge=0, le=4)
    effectively_performed_assignments: int = Field(..., ge=0, le=4)
    oral_written_communication_skills: int = Field(..., ge=0, le=4)
    max_marks: int = Field(DEFAULT_COMPANY_MAX_MARKS, ge=1)
    comments: Optional[str] = None

    @property
    def scores(self) -> dict:
        return {name: getattr(self, name) for name in COMPANY_CRITERIA}

    @property
    def total_marks(self) -> int:
        return sum(self.scores.values())

    @model_validator(mode="after")
    def check_total_within_max(self):
        if self.total_marks > self.max_marks:
            raise ValueError("total marks exceed max_marks")
        return self


# ==================== 响应 Schema ====================

class SupervisorEvaluationResponse(TimestampResponse):
    """导师评价响应（不含发布信息）"""
    student_id: str
    supervisor_id: str
    application_id: str
    student_name: str
    student_registration: Optional[str] = None
    scores: dict
    total_marks: int
    comments: Optional[str] = None


class InterneeEvaluationResponse(TimestampResponse):
    """企业评价响应"""
    intern_id: str
    company_id: str
    application_id: str
    scores: dict
    total_marks: int
    max_marks: Optional[int] = None
    comments: Optional[str] = None
