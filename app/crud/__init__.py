"""
CRUD 操作模块
"""
from .user import user_crud, student_crud
from .job import job_crud
from .application import application_crud
from .evaluation import supervisor_evaluation_crud, internee_evaluation_crud

__all__ = [
    "user_crud",
    "student_crud",
    "job_crud",
    "application_crud",
    "supervisor_evaluation_crud",
    "internee_evaluation_crud",
]
