"""
最终成绩发布

每个 (学生, 导师) 的最终成绩经历 未就绪 → 可发布 → 已发布 三个阶段：
- 两份评价都提交后才可发布
- 发布只能进行一次，由 final_result_sent 条件更新保证
- 学生只有在发布后才能看到成绩

所有分数都通过 grading.aggregate 现算，不做缓存。
"""
from typing import Any, Dict, List, Optional, Tuple

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AuthorizationException,
    ConflictException,
    NotFoundException,
)
from app.core.security import Principal, Role
from app.crud import application_crud, internee_evaluation_crud, supervisor_evaluation_crud
from app.models.application import Application
from app.models.base import utc_now
from app.models.evaluation import InterneeEvaluation, SupervisorEvaluation
from app.services.email import EmailService
from app.services.grading import COMPANY_WEIGHT, SUPERVISOR_WEIGHT, FinalMarks, aggregate

# 学生查询结果的状态
STATUS_NO_INTERNSHIP = "no_approved_internship"
STATUS_PENDING = "pending_supervisor_approval"
STATUS_RELEASED = "released"


def student_info(application: Application) -> Dict[str, Any]:
    profile = application.student_profile or {}
    return {
        "id": application.student_id,
        "name": application.student_name,
        "email": application.student_email,
        "roll_number": profile.get("roll_number"),
        "department": profile.get("department"),
    }


def internship_info(application: Application) -> Dict[str, Any]:
    # 起止日期缺失时返回 null
    return {
        "company_name": application.company_name,
        "position": application.job_title,
        "supervisor_name": application.supervisor_name,
        "start_date": application.start_date,
        "end_date": application.end_date,
    }


class ReleaseGate:
    """最终成绩发布控制"""

    def __init__(self, db: AsyncSession, email_service: EmailService):
        self.db = db
        self.email = email_service

    async def _evaluations(
        self, application: Application
    ) -> Tuple[Optional[SupervisorEvaluation], Optional[InterneeEvaluation]]:
        supervisor_eval = await supervisor_evaluation_crud.get_by_pair(
            self.db, application.student_id, application.supervisor_id
        )
        company_eval = await internee_evaluation_crud.get_by_application(
            self.db, application.student_id, application.id
        )
        return supervisor_eval, company_eval

    async def _supervised_application(self, supervisor: Principal, application_id: str) -> Application:
        application = await application_crud.get(self.db, application_id)
        if not application:
            raise NotFoundException("Application not found or access denied")
        if supervisor.role != Role.SUPERVISOR or application.supervisor_id != supervisor.id:
            raise AuthorizationException("Only the assigned supervisor can manage this result")
        return application

    async def can_send(
        self, application: Application
    ) -> Tuple[SupervisorEvaluation, InterneeEvaluation]:
        """两份评价都存在时返回它们，否则抛出 NotFoundException"""
        supervisor_eval, company_eval = await self._evaluations(application)
        if supervisor_eval is None or company_eval is None:
            raise NotFoundException(
                "Both supervisor and company evaluations must be completed before sending final results"
            )
        return supervisor_eval, company_eval

    async def send(self, application_id: str, supervisor: Principal) -> Dict[str, Any]:
        """
        发布最终成绩（仅一次）

        先以条件更新写入发布状态并提交，再尽力发送邮件；邮件失败不回滚发布。
        """
        application = await self._supervised_application(supervisor, application_id)
        supervisor_eval, company_eval = await self.can_send(application)

        if supervisor_eval.final_result_sent:
            raise ConflictException(
                "Final result has already been sent to this student",
                data={
                    "sent_at": supervisor_eval.final_result_sent_at,
                    "sent_by": supervisor_eval.final_result_sent_by,
                },
            )

        marks = aggregate(supervisor_eval, company_eval)
        sent_at = utc_now()
        released = await supervisor_evaluation_crud.mark_sent(
            self.db, db_obj=supervisor_eval, sent_by=supervisor.id, sent_at=sent_at
        )
        if not released:
            raise ConflictException(
                "Final result has already been sent to this student",
                data={
                    "sent_at": supervisor_eval.final_result_sent_at,
                    "sent_by": supervisor_eval.final_result_sent_by,
                },
            )
        # 发布状态先提交，再对外发送成绩
        await self.db.commit()
        logger.info(
            "导师 {} 发布最终成绩: 申请 {} 总分 {} 等级 {}",
            supervisor.id, application.id, marks.total_marks, marks.grade,
        )

        email_sent = False
        try:
            email_sent = await self.email.send_final_evaluation_email(
                student_info(application),
                {"id": supervisor.id, "name": supervisor.name, "email": supervisor.email},
                marks.to_dict(),
                internship_info(application),
            )
        except Exception:
            logger.exception("最终成绩邮件发送失败: 申请 {}", application.id)

        return {
            "application_id": application.id,
            **marks.to_dict(),
            "sent_at": supervisor_eval.final_result_sent_at,
            "student_email": application.student_email,
            "email_sent": bool(email_sent),
        }

    async def view_sent(self, application_id: str, supervisor: Principal) -> Dict[str, Any]:
        """查看已发布的成绩（只读，按当前评价重新计算）"""
        application = await self._supervised_application(supervisor, application_id)
        supervisor_eval, company_eval = await self._evaluations(application)
        if supervisor_eval is None or not supervisor_eval.final_result_sent:
            raise NotFoundException("Final result has not been sent yet or evaluation not found")

        marks = aggregate(supervisor_eval, company_eval)
        return {
            "application_id": application.id,
            "student_info": student_info(application),
            "internship_info": internship_info(application),
            "evaluation": {**marks.to_dict(), "percentage": marks.percentage},
            "sent_info": {
                "sent_at": supervisor_eval.final_result_sent_at,
                "sent_by": supervisor_eval.final_result_sent_by,
                "already_sent": True,
            },
        }

    async def student_view(self, student: Principal) -> Dict[str, Any]:
        """学生查询最终成绩；未发布时返回待发布状态而非错误"""
        application = await application_crud.get_hired_for_student(self.db, student.id)
        if application is None:
            return {
                "status": STATUS_NO_INTERNSHIP,
                "message": "No approved internship found",
                "result": None,
            }

        supervisor_eval, company_eval = await self._evaluations(application)
        if supervisor_eval is None or not supervisor_eval.final_result_sent:
            return {
                "status": STATUS_PENDING,
                "message": (
                    "Your final evaluation results have not been released yet. "
                    "Please wait for your supervisor to send them."
                ),
                "result": None,
            }

        marks = aggregate(supervisor_eval, company_eval)
        return {
            "status": STATUS_RELEASED,
            "message": "Final evaluation results",
            "result": {
                **marks.to_dict(),
                "student_info": student_info(application),
                "internship_info": internship_info(application),
                "sent_at": supervisor_eval.final_result_sent_at,
                "breakdown": self._breakdown(marks),
            },
        }

    @staticmethod
    def _breakdown(marks: FinalMarks) -> Dict[str, Any]:
        return {
            "supervisor_percentage": SUPERVISOR_WEIGHT,
            "company_percentage": COMPANY_WEIGHT,
            "supervisor_score": round(marks.supervisor_marks / SUPERVISOR_WEIGHT * 100, 2),
            "company_score": round(marks.company_marks / COMPANY_WEIGHT * 100, 2),
        }

    async def list_for_supervisor(self, supervisor: Principal) -> Dict[str, Any]:
        """导师名下已录用学生的成绩列表，按是否已发布分组"""
        ready_to_send: List[Dict[str, Any]] = []
        results_sent: List[Dict[str, Any]] = []

        applications = await application_crud.get_hired_for_supervisor(self.db, supervisor.id)
        for application in applications:
            supervisor_eval, company_eval = await self._evaluations(application)
            marks = aggregate(supervisor_eval, company_eval)
            sent = bool(supervisor_eval and supervisor_eval.final_result_sent)

            entry = {
                "application_id": application.id,
                "student_info": student_info(application),
                "internship_info": internship_info(application),
                "evaluation": {
                    **marks.to_dict(),
                    "final_submitted": sent,
                    "sent_at": supervisor_eval.final_result_sent_at if supervisor_eval else None,
                    "sent_by": supervisor_eval.final_result_sent_by if supervisor_eval else None,
                },
                "has_supervisor_eval": supervisor_eval is not None,
                "has_company_eval": company_eval is not None,
            }
            (results_sent if sent else ready_to_send).append(entry)

        return {
            "ready_to_send": ready_to_send,
            "results_sent": results_sent,
            "summary": {
                "total_evaluations": len(ready_to_send) + len(results_sent),
                "ready_to_send_count": len(ready_to_send),
                "results_sent_count": len(results_sent),
            },
        }
