"""
实习岗位 API 路由
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, require_role
from app.core.database import get_db
from app.core.exceptions import NotFoundException
from app.core.response import (
    success_response,
    paged_response,
    ResponseModel,
    PagedResponseModel,
)
from app.core.security import Principal, Role
from app.crud import job_crud, user_crud
from app.models.job import JobCreate, JobResponse, JobStatus

router = APIRouter()


@router.post("", summary="发布岗位", response_model=ResponseModel[JobResponse])
async def create_job(
    data: JobCreate,
    current_user: Principal = Depends(require_role(Role.COMPANY)),
    db: AsyncSession = Depends(get_db),
):
    company = await user_crud.get(db, current_user.id)
    job = await job_crud.create(db, obj_in={
        **data.model_dump(),
        "company_id": current_user.id,
        "company_name": (company.company_name if company else None) or current_user.name,
        "status": JobStatus.ACTIVE.value,
    })
    logger.info("企业 {} 发布岗位 {}: {}", current_user.id, job.id, job.title)
    return success_response(
        data=JobResponse.model_validate(job).model_dump(),
        message="Job created successfully",
    )


@router.get("", summary="获取岗位列表", response_model=PagedResponseModel[JobResponse])
async def get_jobs(
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    status: Optional[JobStatus] = Query(None, description="状态筛选"),
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    skip = (page - 1) * page_size
    if status:
        jobs = await job_crud.get_by_status(db, status.value, skip=skip, limit=page_size)
        total = await job_crud.count_by_status(db, status.value)
    else:
        jobs = await job_crud.get_multi(db, skip=skip, limit=page_size)
        total = await job_crud.count(db)

    items = [JobResponse.model_validate(j).model_dump() for j in jobs]
    return paged_response(items, total, page, page_size)


@router.get("/{job_id}", summary="获取岗位详情", response_model=ResponseModel[JobResponse])
async def get_job(
    job_id: str,
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    job = await job_crud.get(db, job_id)
    if not job:
        raise NotFoundException(f"Job not found: {job_id}")
    return success_response(data=JobResponse.model_validate(job).model_dump())
