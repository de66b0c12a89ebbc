"""
服务层模块
"""
from .email import EmailService, get_email_service
from .evaluation import EvaluationService
from .grading import FinalMarks, aggregate, grade_for, scale_company_marks
from .identity import IdentityResolver
from .release import ReleaseGate
from .workflow import ApplicationWorkflowEngine

__all__ = [
    # 邮件
    "EmailService",
    "get_email_service",
    # 成绩
    "FinalMarks",
    "aggregate",
    "grade_for",
    "scale_company_marks",
    # 流程
    "IdentityResolver",
    "ApplicationWorkflowEngine",
    "EvaluationService",
    "ReleaseGate",
]
