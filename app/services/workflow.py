"""
实习申请审核流程

状态流转（括号内为操作者）:
    提交(学生) → 导师审核(通过/驳回) → [驳回后学生重新提交]
    → 企业开始审核 → [安排面试] → 录用 / 拒绝（终态）

每次流转都是一次"期望当前状态"的条件更新，并发请求中后到者得到 InvalidStateException。
"""
from typing import Any, Awaitable, Dict, Iterable, Optional

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AuthorizationException,
    ConflictException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from app.core.security import Principal, Role
from app.crud import application_crud, job_crud, user_crud
from app.models.application import (
    Application,
    ApplicationCreate,
    ApplicationState,
    CompanyDecision,
    CompanyReviewRequest,
    CompanyStatus,
    InterviewScheduleRequest,
    ResubmitRequest,
    SupervisorDecision,
    SupervisorReviewRequest,
    SupervisorStatus,
)
from app.models.base import utc_now
from app.models.job import Job, JobStatus
from app.services.email import EmailService
from app.services.identity import IdentityResolver

# 等待导师审核的状态
AWAITING_SUPERVISOR = (ApplicationState.SUBMITTED.value, ApplicationState.RESUBMITTED.value)
# 企业可以做出录用/拒绝决定的状态
AWAITING_COMPANY_DECISION = (
    ApplicationState.COMPANY_REVIEW.value,
    ApplicationState.INTERVIEW_SCHEDULED.value,
)

HIRED_ELSEWHERE_COMMENT = "Student hired for another position"


class ApplicationWorkflowEngine:
    """实习申请状态机"""

    def __init__(self, db: AsyncSession, email_service: EmailService):
        self.db = db
        self.email = email_service
        self.identity = IdentityResolver(db)

    # ==================== 内部工具 ====================

    async def get_application(self, application_id: str) -> Application:
        application = await application_crud.get(self.db, application_id)
        if not application:
            raise NotFoundException(f"Application not found: {application_id}")
        return application

    async def get_for_participant(self, principal: Principal, application_id: str) -> Application:
        """读取申请，仅限申请的参与方或管理员"""
        application = await self.get_application(application_id)
        participants = {application.student_id, application.supervisor_id, application.company_id}
        if principal.role != Role.ADMIN and principal.id not in participants:
            raise AuthorizationException("Not authorized to view this application")
        return application

    @staticmethod
    def _ensure_not_terminal(application: Application) -> None:
        if application.is_terminal:
            raise InvalidStateException(
                f"Application is already {application.overall_status} and accepts no further changes",
                data={"overall_status": application.overall_status},
            )

    @staticmethod
    def _ensure_supervisor(principal: Principal, application: Application) -> None:
        if principal.role != Role.SUPERVISOR or application.supervisor_id != principal.id:
            raise AuthorizationException("Only the assigned supervisor can review this application")

    @staticmethod
    def _ensure_company(principal: Principal, application: Application) -> None:
        if principal.role != Role.COMPANY or application.company_id != principal.id:
            raise AuthorizationException("Not authorized to update this application")

    @staticmethod
    def _ensure_supervisor_approved(application: Application) -> None:
        if application.supervisor_status != SupervisorStatus.APPROVED.value:
            raise InvalidStateException(
                "Supervisor approval required before company review",
                data={"supervisor_status": application.supervisor_status},
            )

    async def _transition(
        self,
        application: Application,
        *,
        expected: Dict[str, Any],
        values: Dict[str, Any],
        action: str,
    ) -> Application:
        ok = await application_crud.conditional_update(
            self.db, db_obj=application, expected=expected, values=values
        )
        if not ok:
            raise InvalidStateException(
                f"Application state changed concurrently, cannot {action}",
                data={
                    "overall_status": application.overall_status,
                    "supervisor_status": application.supervisor_status,
                    "company_status": application.company_status,
                },
            )
        logger.info(
            "申请 {} {} → overall={} supervisor={} company={}",
            application.id,
            action,
            application.overall_status,
            application.supervisor_status,
            application.company_status,
        )
        return application

    @staticmethod
    def _internship(application: Application) -> Dict[str, Any]:
        return {
            "position": application.job_title,
            "company_name": application.company_name,
        }

    @staticmethod
    async def _notify(send: Awaitable, what: str) -> None:
        """尽力发送通知，失败不影响已完成的状态流转"""
        try:
            await send
        except Exception:
            logger.exception("通知发送失败: {}", what)

    @staticmethod
    def _append_revision(revisions: Optional[Iterable], entry: Dict[str, Any]) -> list:
        return list(revisions or []) + [entry]

    # ==================== 学生 ====================

    async def submit(self, student: Principal, data: ApplicationCreate) -> Application:
        """学生提交申请"""
        job = await job_crud.get(self.db, data.job_id)
        if not job:
            raise NotFoundException(f"Job not found: {data.job_id}")

        if await application_crud.get_hired_for_student(self.db, student.id):
            raise ConflictException("You have already been hired for an internship")
        if await application_crud.get_existing_for_job(self.db, student.id, job.id):
            raise ConflictException("You have already applied for this job")

        if job.status != JobStatus.ACTIVE.value:
            raise InvalidStateException("This job is no longer accepting applications")
        if job.hired_count >= job.application_limit:
            raise InvalidStateException(
                "This job has reached its maximum number of hired students"
            )

        supervisor = await user_crud.get(self.db, data.supervisor_id)
        if not supervisor or supervisor.role != Role.SUPERVISOR.value:
            raise NotFoundException(f"Supervisor not found: {data.supervisor_id}")

        view = await self.identity.resolve(student.id)
        profile = await self.identity.materialize(view)
        profile.selected_supervisor_id = supervisor.id

        now = utc_now()
        application = await application_crud.create(self.db, obj_in={
            "student_id": student.id,
            "supervisor_id": supervisor.id,
            "company_id": job.company_id,
            "job_id": job.id,
            "student_name": view.full_name,
            "student_email": view.email,
            "student_profile": {
                "roll_number": profile.roll_number,
                "department": profile.department,
                "semester": profile.semester,
                "cgpa": profile.cgpa,
                "phone_number": profile.phone_number,
            },
            "job_title": job.title,
            "company_name": job.company_name,
            "supervisor_name": supervisor.name,
            "cover_letter": data.cover_letter,
            "answers": data.answers,
            "supervisor_status": SupervisorStatus.PENDING.value,
            "company_status": CompanyStatus.PENDING.value,
            "overall_status": ApplicationState.SUBMITTED.value,
            "revisions": [],
            "submitted_at": now,
        })
        logger.info("学生 {} 提交申请 {}（岗位 {}）", student.id, application.id, job.id)
        return application

    async def resubmit(
        self,
        student: Principal,
        application_id: str,
        data: ResubmitRequest,
    ) -> Application:
        """导师驳回后学生修改并重新提交"""
        application = await self.get_application(application_id)
        if student.role != Role.STUDENT or application.student_id != student.id:
            raise AuthorizationException("Only the applicant can resubmit this application")
        if application.supervisor_status != SupervisorStatus.REJECTED.value:
            raise InvalidStateException(
                "Application is not in a state that allows resubmission",
                data={"supervisor_status": application.supervisor_status},
            )

        now = utc_now()
        payload: Dict[str, Any] = {}
        values: Dict[str, Any] = {
            "supervisor_status": SupervisorStatus.PENDING.value,
            "overall_status": ApplicationState.RESUBMITTED.value,
            "rejection_feedback": None,
            "resubmission_count": application.resubmission_count + 1,
            "resubmitted_at": now,
        }
        if data.cover_letter is not None:
            values["cover_letter"] = payload["cover_letter"] = data.cover_letter
        if data.answers is not None:
            values["answers"] = payload["answers"] = data.answers

        # 刷新档案快照
        view = await self.identity.resolve(student.id)
        values["student_profile"] = {
            **(application.student_profile or {}),
            "roll_number": view.roll_number,
            "department": view.department,
            "semester": view.semester,
            "cgpa": view.cgpa,
            "phone_number": view.phone_number,
        }
        values["revisions"] = self._append_revision(application.revisions, {
            "type": "resubmission",
            "payload": payload,
            "note": data.note,
            "at": now.isoformat(),
        })

        return await self._transition(
            application,
            expected={
                "supervisor_status": SupervisorStatus.REJECTED.value,
                "overall_status": ApplicationState.SUPERVISOR_REJECTED.value,
            },
            values=values,
            action="resubmit",
        )

    # ==================== 导师 ====================

    async def supervisor_review(
        self,
        supervisor: Principal,
        application_id: str,
        data: SupervisorReviewRequest,
    ) -> Application:
        """导师审核：通过或带反馈驳回"""
        application = await self.get_application(application_id)
        self._ensure_supervisor(supervisor, application)
        if application.supervisor_status != SupervisorStatus.PENDING.value:
            raise InvalidStateException(
                f"Application has already been {application.supervisor_status} by the supervisor",
                data={"supervisor_status": application.supervisor_status},
            )

        now = utc_now()
        feedback = (data.feedback or "").strip()
        expected = {
            "supervisor_status": SupervisorStatus.PENDING.value,
            "overall_status": AWAITING_SUPERVISOR,
        }

        if data.decision == SupervisorDecision.APPROVE:
            application = await self._transition(
                application,
                expected=expected,
                values={
                    "supervisor_status": SupervisorStatus.APPROVED.value,
                    "overall_status": ApplicationState.SUPERVISOR_APPROVED.value,
                    "supervisor_comments": feedback or None,
                    "supervisor_reviewed_at": now,
                },
                action="approve",
            )
            await self._notify(
                self.email.send_application_status_email(
                    {"name": application.student_name, "email": application.student_email},
                    "approved by your supervisor",
                    self._internship(application),
                    feedback or None,
                ),
                f"supervisor approval of {application.id}",
            )
            return application

        if not feedback:
            raise ValidationException("Feedback is required when rejecting an application")

        revisions = application.revisions or []
        if not revisions:
            revisions = [{
                "type": "initial",
                "payload": {"cover_letter": application.cover_letter},
                "note": "Initial submission",
                "at": (application.submitted_at or application.created_at).isoformat(),
            }]

        application = await self._transition(
            application,
            expected=expected,
            values={
                "supervisor_status": SupervisorStatus.REJECTED.value,
                "overall_status": ApplicationState.SUPERVISOR_REJECTED.value,
                "supervisor_comments": feedback,
                "supervisor_reviewed_at": now,
                "rejection_feedback": {
                    "feedback": feedback,
                    "requested_fixes": data.requested_fixes,
                    "by_supervisor_id": supervisor.id,
                    "at": now.isoformat(),
                },
                "revisions": list(revisions),
            },
            action="reject",
        )
        await self._notify(
            self.email.send_application_status_email(
                {"name": application.student_name, "email": application.student_email},
                "returned by your supervisor for changes",
                self._internship(application),
                feedback,
            ),
            f"supervisor rejection of {application.id}",
        )
        return application

    async def approve_resubmission(self, supervisor: Principal, application_id: str) -> Application:
        """导师通过重新提交的申请"""
        return await self.supervisor_review(
            supervisor,
            application_id,
            SupervisorReviewRequest(decision=SupervisorDecision.APPROVE),
        )

    # ==================== 企业 ====================

    async def company_review(
        self,
        company: Principal,
        application_id: str,
        data: CompanyReviewRequest,
    ) -> Application:
        """企业审核：开始审核 / 录用 / 拒绝"""
        application = await self.get_application(application_id)
        self._ensure_company(company, application)
        self._ensure_supervisor_approved(application)
        self._ensure_not_terminal(application)

        now = utc_now()
        comments = (data.comments or "").strip() or None

        if data.decision == CompanyDecision.OPEN:
            if application.overall_status != ApplicationState.SUPERVISOR_APPROVED.value:
                raise InvalidStateException(
                    "Company review has already started for this application",
                    data={"overall_status": application.overall_status},
                )
            return await self._transition(
                application,
                expected={
                    "supervisor_status": SupervisorStatus.APPROVED.value,
                    "overall_status": ApplicationState.SUPERVISOR_APPROVED.value,
                },
                values={
                    "overall_status": ApplicationState.COMPANY_REVIEW.value,
                    "company_comments": comments,
                    "company_reviewed_at": now,
                },
                action="open company review",
            )

        if application.overall_status not in AWAITING_COMPANY_DECISION:
            raise InvalidStateException(
                "Company review must be opened before a hiring decision",
                data={"overall_status": application.overall_status},
            )
        expected = {
            "supervisor_status": SupervisorStatus.APPROVED.value,
            "overall_status": AWAITING_COMPANY_DECISION,
        }

        if data.decision == CompanyDecision.ACCEPT:
            # 录用名额与申请状态在同一事务内变更，任一失败整体回滚
            job = await job_crud.get(self.db, application.job_id)
            if not job:
                raise NotFoundException(f"Job not found: {application.job_id}")
            if not await job_crud.reserve_hire(self.db, db_obj=job):
                raise InvalidStateException(
                    "This job has reached its maximum number of hired students",
                    data={"hired_count": job.hired_count, "application_limit": job.application_limit},
                )
            application = await self._transition(
                application,
                expected=expected,
                values={
                    "company_status": CompanyStatus.HIRED.value,
                    "overall_status": ApplicationState.HIRED.value,
                    "company_comments": comments,
                    "company_reviewed_at": now,
                    "hired_at": now,
                    "start_date": data.start_date,
                    "end_date": data.end_date,
                },
                action="hire",
            )
            await self._after_hire(application, job)
            await self._notify(
                self.email.send_application_status_email(
                    {"name": application.student_name, "email": application.student_email},
                    "hired",
                    self._internship(application),
                    comments,
                ),
                f"hiring of {application.id}",
            )
            return application

        application = await self._transition(
            application,
            expected=expected,
            values={
                "company_status": CompanyStatus.REJECTED.value,
                "overall_status": ApplicationState.REJECTED.value,
                "company_comments": comments,
                "company_reviewed_at": now,
                "rejected_at": now,
            },
            action="reject by company",
        )
        await self._notify(
            self.email.send_application_status_email(
                {"name": application.student_name, "email": application.student_email},
                "not selected",
                self._internship(application),
                comments,
            ),
            f"company rejection of {application.id}",
        )
        return application

    async def _after_hire(self, application: Application, job: Job) -> None:
        """录用后：记录岗位满员情况，并终止该学生其余未终结的申请"""
        if job.status == JobStatus.CLOSED.value:
            logger.info("岗位 {} 已达录用上限 ({}/{})，已关闭", job.id, job.hired_count, job.application_limit)

        closed = await application_crud.reject_other_open(
            self.db,
            student_id=application.student_id,
            keep_id=application.id,
            comments=HIRED_ELSEWHERE_COMMENT,
        )
        if closed:
            logger.info("学生 {} 已被录用，终止其余 {} 份申请", application.student_id, closed)

    async def schedule_interview(
        self,
        company: Principal,
        application_id: str,
        details: InterviewScheduleRequest,
    ) -> Application:
        """企业安排（或重新安排）面试，并通知学生和导师"""
        application = await self.get_application(application_id)
        self._ensure_company(company, application)
        self._ensure_supervisor_approved(application)
        self._ensure_not_terminal(application)
        if application.overall_status not in AWAITING_COMPANY_DECISION:
            raise InvalidStateException(
                "Company review must be opened before scheduling an interview",
                data={"overall_status": application.overall_status},
            )

        interview = {
            "date": details.date.isoformat(),
            "time": details.date.strftime("%H:%M"),
            "mode": details.mode.value,
            "location": details.location,
            "meeting_link": details.location if details.mode.value == "remote" else "",
            "notes": details.notes,
        }
        application = await self._transition(
            application,
            expected={
                "supervisor_status": SupervisorStatus.APPROVED.value,
                "overall_status": AWAITING_COMPANY_DECISION,
            },
            values={
                "company_status": CompanyStatus.INTERVIEW_SCHEDULED.value,
                "overall_status": ApplicationState.INTERVIEW_SCHEDULED.value,
                "interview_details": interview,
                "interview_scheduled_at": utc_now(),
            },
            action="schedule interview",
        )

        internship = self._internship(application)
        await self._notify(
            self.email.send_interview_scheduled_email(
                {"name": application.student_name, "email": application.student_email},
                interview,
                internship,
            ),
            f"interview notice to student of {application.id}",
        )
        supervisor = await user_crud.get(self.db, application.supervisor_id)
        if supervisor:
            await self._notify(
                self.email.send_interview_scheduled_email(
                    {"name": supervisor.name, "email": supervisor.email},
                    interview,
                    internship,
                    student_name=application.student_name,
                ),
                f"interview notice to supervisor of {application.id}",
            )
        return application
