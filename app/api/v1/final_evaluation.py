"""
最终成绩 API 路由

导师查看待发布/已发布列表、发布成绩、查看已发布成绩；学生查询自己的成绩
"""
from fastapi import APIRouter, Depends

from app.api.deps import get_release_gate, require_role
from app.core.response import success_response, DictResponse
from app.core.security import Principal, Role
from app.services.release import ReleaseGate

router = APIRouter()


@router.get("/supervisor/final-evaluations", summary="导师最终成绩列表", response_model=DictResponse)
async def get_final_evaluations(
    current_user: Principal = Depends(require_role(Role.SUPERVISOR)),
    gate: ReleaseGate = Depends(get_release_gate),
):
    data = await gate.list_for_supervisor(current_user)
    return success_response(data=data)


@router.post("/supervisor/send-result/{application_id}", summary="发布最终成绩", response_model=DictResponse)
async def send_final_result(
    application_id: str,
    current_user: Principal = Depends(require_role(Role.SUPERVISOR)),
    gate: ReleaseGate = Depends(get_release_gate),
):
    """发布后不可撤销，重复发布返回 400"""
    data = await gate.send(application_id, current_user)
    return success_response(data=data, message="Final result sent to student successfully")


@router.get(
    "/supervisor/view-sent-result/{application_id}",
    summary="查看已发布的最终成绩",
    response_model=DictResponse,
)
async def view_sent_result(
    application_id: str,
    current_user: Principal = Depends(require_role(Role.SUPERVISOR)),
    gate: ReleaseGate = Depends(get_release_gate),
):
    data = await gate.view_sent(application_id, current_user)
    return success_response(data=data, message="Final result details (already sent)")


@router.get("/student/result", summary="学生查询最终成绩", response_model=DictResponse)
async def get_student_result(
    current_user: Principal = Depends(require_role(Role.STUDENT)),
    gate: ReleaseGate = Depends(get_release_gate),
):
    """成绩未发布时返回 200 与待发布状态，data.result 为空"""
    view = await gate.student_view(current_user)
    return success_response(data=view, message=view["message"])
