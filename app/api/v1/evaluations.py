"""
实习评价 API 路由
"""
from fastapi import APIRouter, Depends

from app.api.deps import get_evaluation_service, require_role
from app.core.response import success_response, ResponseModel
from app.core.security import Principal, Role
from app.models.evaluation import (
    InterneeEvaluationCreate,
    InterneeEvaluationResponse,
    SupervisorEvaluationCreate,
    SupervisorEvaluationResponse,
)
from app.services.evaluation import EvaluationService

router = APIRouter()


@router.post("/supervisor", summary="导师提交评价", response_model=ResponseModel[SupervisorEvaluationResponse])
async def submit_supervisor_evaluation(
    data: SupervisorEvaluationCreate,
    current_user: Principal = Depends(require_role(Role.SUPERVISOR)),
    service: EvaluationService = Depends(get_evaluation_service),
):
    evaluation = await service.submit_supervisor_evaluation(current_user, data)
    return success_response(
        data=SupervisorEvaluationResponse.model_validate(evaluation).model_dump(),
        message="Supervisor evaluation submitted successfully",
    )


@router.post("/company", summary="企业提交评价", response_model=ResponseModel[InterneeEvaluationResponse])
async def submit_company_evaluation(
    data: InterneeEvaluationCreate,
    current_user: Principal = Depends(require_role(Role.COMPANY)),
    service: EvaluationService = Depends(get_evaluation_service),
):
    evaluation = await service.submit_company_evaluation(current_user, data)
    return success_response(
        data=InterneeEvaluationResponse.model_validate(evaluation).model_dump(),
        message="Internee evaluation submitted successfully",
    )
