"""
API 路由模块
"""
from fastapi import APIRouter

from .v1 import applications, jobs, evaluations, final_evaluation

# 创建主路由
api_router = APIRouter()

# 注册各模块路由
api_router.include_router(
    jobs.router,
    prefix="/jobs",
    tags=["实习岗位"]
)
api_router.include_router(
    applications.router,
    prefix="/applications",
    tags=["实习申请"]
)
api_router.include_router(
    evaluations.router,
    prefix="/evaluations",
    tags=["实习评价"]
)
api_router.include_router(
    final_evaluation.router,
    prefix="/final-evaluation",
    tags=["最终成绩"]
)
