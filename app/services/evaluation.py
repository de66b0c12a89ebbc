"""
实习评价提交

只有已录用（overall_status=approved）的申请才能提交评价；
导师与企业各自对同一申请只能提交一次。
"""
from loguru import logger
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AuthorizationException,
    ConflictException,
    InvalidStateException,
    NotFoundException,
)
from app.core.security import Principal, Role
from app.crud import application_crud, internee_evaluation_crud, supervisor_evaluation_crud
from app.models.application import Application, ApplicationState
from app.models.evaluation import (
    InterneeEvaluation,
    InterneeEvaluationCreate,
    SupervisorEvaluation,
    SupervisorEvaluationCreate,
)
from app.services.identity import IdentityResolver


class EvaluationService:
    """评价提交服务"""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.identity = IdentityResolver(db)

    async def _hired_application(self, application_id: str) -> Application:
        application = await application_crud.get(self.db, application_id)
        if not application:
            raise NotFoundException(f"Application not found: {application_id}")
        if application.overall_status != ApplicationState.HIRED.value:
            raise InvalidStateException(
                "Evaluations can only be submitted for hired students",
                data={"overall_status": application.overall_status},
            )
        return application

    async def submit_supervisor_evaluation(
        self,
        supervisor: Principal,
        data: SupervisorEvaluationCreate,
    ) -> SupervisorEvaluation:
        application = await self._hired_application(data.application_id)
        if supervisor.role != Role.SUPERVISOR or application.supervisor_id != supervisor.id:
            raise AuthorizationException("Only the assigned supervisor can evaluate this student")

        existing = await supervisor_evaluation_crud.get_by_pair(
            self.db, application.student_id, supervisor.id
        )
        if existing:
            raise ConflictException("Evaluation already submitted for this student")

        student = await self.identity.resolve(application.student_id)
        try:
            evaluation = await supervisor_evaluation_crud.create(self.db, obj_in={
                "student_id": application.student_id,
                "supervisor_id": supervisor.id,
                "application_id": application.id,
                "student_name": student.full_name,
                "student_registration": student.roll_number,
                "scores": data.scores,
                "total_marks": data.total_marks,
                "comments": data.comments,
            })
        except IntegrityError as e:
            raise ConflictException("Evaluation already submitted for this student") from e

        logger.info(
            "导师 {} 提交评价: 学生 {} 总分 {}/60",
            supervisor.id, application.student_id, evaluation.total_marks,
        )
        return evaluation

    async def submit_company_evaluation(
        self,
        company: Principal,
        data: InterneeEvaluationCreate,
    ) -> InterneeEvaluation:
        application = await self._hired_application(data.application_id)
        if company.role != Role.COMPANY or application.company_id != company.id:
            raise AuthorizationException("Only the hiring company can evaluate this intern")

        existing = await internee_evaluation_crud.get_by_application(
            self.db, application.student_id, application.id
        )
        if existing:
            raise ConflictException("Evaluation already submitted for this intern")

        try:
            evaluation = await internee_evaluation_crud.create(self.db, obj_in={
                "intern_id": application.student_id,
                "company_id": company.id,
                "application_id": application.id,
                "scores": data.scores,
                "total_marks": data.total_marks,
                "max_marks": data.max_marks,
                "comments": data.comments,
            })
        except IntegrityError as e:
            raise ConflictException("Evaluation already submitted for this intern") from e

        logger.info(
            "企业 {} 提交评价: 实习生 {} 总分 {}/{}",
            company.id, application.student_id, evaluation.total_marks, evaluation.max_marks,
        )
        return evaluation
