"""
实习申请 API 路由
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user, get_workflow_engine, require_role
from app.core.database import get_db
from app.core.response import (
    success_response,
    paged_response,
    ResponseModel,
    PagedResponseModel,
)
from app.core.security import Principal, Role
from app.crud import application_crud
from app.models.application import (
    ApplicationCreate,
    ApplicationListResponse,
    ApplicationResponse,
    CompanyReviewRequest,
    InterviewScheduleRequest,
    ResubmitRequest,
    SupervisorReviewRequest,
)
from app.services.workflow import ApplicationWorkflowEngine

router = APIRouter()


def _dump(application) -> dict:
    return ApplicationResponse.model_validate(application).model_dump()


@router.post("", summary="提交实习申请", response_model=ResponseModel[ApplicationResponse])
async def submit_application(
    data: ApplicationCreate,
    current_user: Principal = Depends(require_role(Role.STUDENT)),
    engine: ApplicationWorkflowEngine = Depends(get_workflow_engine),
):
    application = await engine.submit(current_user, data)
    return success_response(data=_dump(application), message="Application submitted successfully")


@router.get("", summary="获取实习申请列表", response_model=PagedResponseModel[ApplicationListResponse])
async def get_applications(
    page: int = Query(1, ge=1, description="页码"),
    page_size: int = Query(20, ge=1, le=100, description="每页数量"),
    status: Optional[str] = Query(None, description="整体状态筛选"),
    current_user: Principal = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    按调用者角色返回可见的申请：
    学生看自己的，导师看指派给自己的，企业只看导师已通过的
    """
    scope = {"status": status}
    if current_user.role == Role.STUDENT:
        scope["student_id"] = current_user.id
    elif current_user.role == Role.SUPERVISOR:
        scope["supervisor_id"] = current_user.id
    elif current_user.role == Role.COMPANY:
        scope["company_id"] = current_user.id
        scope["supervisor_approved_only"] = True

    skip = (page - 1) * page_size
    applications = await application_crud.get_scoped(db, skip=skip, limit=page_size, **scope)
    total = await application_crud.count_scoped(db, **scope)

    items = [ApplicationListResponse.model_validate(a).model_dump() for a in applications]
    return paged_response(items, total, page, page_size)


@router.get("/{application_id}", summary="获取实习申请详情", response_model=ResponseModel[ApplicationResponse])
async def get_application(
    application_id: str,
    current_user: Principal = Depends(get_current_user),
    engine: ApplicationWorkflowEngine = Depends(get_workflow_engine),
):
    application = await engine.get_for_participant(current_user, application_id)
    return success_response(data=_dump(application))


@router.put(
    "/{application_id}/supervisor-review",
    summary="导师审核",
    response_model=ResponseModel[ApplicationResponse],
)
async def supervisor_review(
    application_id: str,
    data: SupervisorReviewRequest,
    current_user: Principal = Depends(require_role(Role.SUPERVISOR)),
    engine: ApplicationWorkflowEngine = Depends(get_workflow_engine),
):
    application = await engine.supervisor_review(current_user, application_id, data)
    return success_response(
        data=_dump(application),
        message=f"Application {application.supervisor_status} by supervisor",
    )


@router.patch(
    "/{application_id}/resubmit",
    summary="驳回后重新提交",
    response_model=ResponseModel[ApplicationResponse],
)
async def resubmit_application(
    application_id: str,
    data: ResubmitRequest,
    current_user: Principal = Depends(require_role(Role.STUDENT)),
    engine: ApplicationWorkflowEngine = Depends(get_workflow_engine),
):
    application = await engine.resubmit(current_user, application_id, data)
    return success_response(data=_dump(application), message="Application resubmitted successfully")


@router.patch(
    "/{application_id}/supervisor/approve",
    summary="导师通过重新提交的申请",
    response_model=ResponseModel[ApplicationResponse],
)
async def approve_resubmission(
    application_id: str,
    current_user: Principal = Depends(require_role(Role.SUPERVISOR)),
    engine: ApplicationWorkflowEngine = Depends(get_workflow_engine),
):
    application = await engine.approve_resubmission(current_user, application_id)
    return success_response(data=_dump(application), message="Application approved by supervisor")


@router.put(
    "/{application_id}/company-review",
    summary="企业审核",
    response_model=ResponseModel[ApplicationResponse],
)
async def company_review(
    application_id: str,
    data: CompanyReviewRequest,
    current_user: Principal = Depends(require_role(Role.COMPANY)),
    engine: ApplicationWorkflowEngine = Depends(get_workflow_engine),
):
    application = await engine.company_review(current_user, application_id, data)
    return success_response(
        data=_dump(application),
        message=f"Application status updated to {application.overall_status}",
    )


@router.patch(
    "/{application_id}/interview",
    summary="安排面试",
    response_model=ResponseModel[ApplicationResponse],
)
async def schedule_interview(
    application_id: str,
    data: InterviewScheduleRequest,
    current_user: Principal = Depends(require_role(Role.COMPANY)),
    engine: ApplicationWorkflowEngine = Depends(get_workflow_engine),
):
    application = await engine.schedule_interview(current_user, application_id, data)
    return success_response(data=_dump(application), message="Interview scheduled successfully")
