"""
API v1 路由模块
"""
from . import applications, jobs, evaluations, final_evaluation

__all__ = [
    "applications",
    "jobs",
    "evaluations",
    "final_evaluation",
]
