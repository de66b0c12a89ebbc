"""
SQLModel 模型模块

使用 SQLModel 统一 ORM Model 和 Pydantic Schema
"""
from .base import SQLModelBase, TimestampMixin, IDMixin, TimestampResponse, utc_now
from .user import User, StudentProfile, StudentView, IdentitySource
from .job import Job, JobStatus, JobCreate, JobResponse
from .application import (
    Application, ApplicationState, SupervisorStatus, CompanyStatus, TERMINAL_STATES,
    SupervisorDecision, CompanyDecision, InterviewMode,
    ApplicationCreate, SupervisorReviewRequest, ResubmitRequest,
    CompanyReviewRequest, InterviewScheduleRequest,
    ApplicationResponse, ApplicationListResponse,
)
from .evaluation import (
    SupervisorEvaluation, InterneeEvaluation,
    SupervisorEvaluationCreate, InterneeEvaluationCreate,
    SupervisorEvaluationResponse, InterneeEvaluationResponse,
    SUPERVISOR_CRITERIA, COMPANY_CRITERIA, DEFAULT_COMPANY_MAX_MARKS,
)

__all__ = [
    # Base
    "SQLModelBase",
    "TimestampMixin",
    "IDMixin",
    "TimestampResponse",
    "utc_now",
    # Identity
    "User",
    "StudentProfile",
    "StudentView",
    "IdentitySource",
    # Job
    "Job",
    "JobStatus",
    "JobCreate",
    "JobResponse",
    # Application
    "Application",
    "ApplicationState",
    "SupervisorStatus",
    "CompanyStatus",
    "TERMINAL_STATES",
    "SupervisorDecision",
    "CompanyDecision",
    "InterviewMode",
    "ApplicationCreate",
    "SupervisorReviewRequest",
    "ResubmitRequest",
    "CompanyReviewRequest",
    "InterviewScheduleRequest",
    "ApplicationResponse",
    "ApplicationListResponse",
    # Evaluation
    "SupervisorEvaluation",
    "InterneeEvaluation",
    "SupervisorEvaluationCreate",
    "InterneeEvaluationCreate",
    "SupervisorEvaluationResponse",
    "InterneeEvaluationResponse",
    "SUPERVISOR_CRITERIA",
    "COMPANY_CRITERIA",
    "DEFAULT_COMPANY_MAX_MARKS",
]
