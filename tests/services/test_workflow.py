"""
申请审核流程测试

直接调用 ApplicationWorkflowEngine，覆盖状态守卫与录用后的副作用
"""
from datetime import date, datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
import pytest_asyncio
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    AuthorizationException,
    ConflictException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
)
from app.core.security import Principal, Role
from app.crud import application_crud, job_crud, student_crud
from app.models.application import (
    ApplicationCreate,
    CompanyDecision,
    CompanyReviewRequest,
    InterviewScheduleRequest,
    InterviewMode,
    ResubmitRequest,
    SupervisorDecision,
    SupervisorReviewRequest,
)
from app.models.job import Job
from app.models.user import User
from app.services.workflow import ApplicationWorkflowEngine


async def add_user(db: AsyncSession, role: Role, name: str, **extra) -> Principal:
    user = User(name=name, email=f"{name.lower()}@example.com", role=role.value, **extra)
    db.add(user)
    await db.commit()
    return Principal(id=user.id, role=role, name=user.name, email=user.email)


@pytest_asyncio.fixture
async def world(db_session: AsyncSession):
    student = await add_user(
        db_session, Role.STUDENT, "Ayesha",
        department="computer-science", semester="7", registration_number="REG-1",
    )
    supervisor = await add_user(db_session, Role.SUPERVISOR, "Supervisor")
    company = await add_user(db_session, Role.COMPANY, "Acme", company_name="Acme Ltd")
    job = await job_crud.create(db_session, obj_in={
        "title": "Backend Intern",
        "company_id": company.id,
        "company_name": "Acme Ltd",
        "application_limit": 1,
    })
    await db_session.commit()
    return SimpleNamespace(student=student, supervisor=supervisor, company=company, job_id=job.id)


@pytest.fixture
def engine(db_session: AsyncSession, email_service) -> ApplicationWorkflowEngine:
    return ApplicationWorkflowEngine(db_session, email_service)


def apply_to(world, job_id=None) -> ApplicationCreate:
    return ApplicationCreate(
        job_id=job_id or world.job_id,
        supervisor_id=world.supervisor.id,
        cover_letter="Please consider me.",
    )


APPROVE = SupervisorReviewRequest(decision=SupervisorDecision.APPROVE)
OPEN = CompanyReviewRequest(decision=CompanyDecision.OPEN)
ACCEPT = CompanyReviewRequest(decision=CompanyDecision.ACCEPT)


async def approved_application(engine, world):
    application = await engine.submit(world.student, apply_to(world))
    return await engine.supervisor_review(world.supervisor, application.id, APPROVE)


# ==================== 提交 ====================

@pytest.mark.asyncio
async def test_submit_snapshots_profile(engine, world, db_session):
    application = await engine.submit(world.student, apply_to(world))

    assert application.overall_status == "submitted"
    assert application.supervisor_status == "pending"
    assert application.company_status == "pending"
    assert application.student_id == world.student.id
    assert application.company_id == world.company.id
    assert application.job_title == "Backend Intern"
    assert application.company_name == "Acme Ltd"
    assert application.supervisor_name == "Supervisor"
    assert application.student_profile["roll_number"] == "REG-1"
    assert application.student_profile["department"] == "Computer Science"

    profile = await student_crud.get_by_email(db_session, world.student.email)
    assert profile is not None
    assert profile.selected_supervisor_id == world.supervisor.id


@pytest.mark.asyncio
async def test_submit_twice_for_same_job_conflicts(engine, world):
    await engine.submit(world.student, apply_to(world))
    with pytest.raises(ConflictException):
        await engine.submit(world.student, apply_to(world))


@pytest.mark.asyncio
async def test_submit_guards(engine, world, db_session):
    with pytest.raises(NotFoundException):
        await engine.submit(world.student, apply_to(world, job_id="missing"))

    bad_supervisor = ApplicationCreate(
        job_id=world.job_id, supervisor_id=world.company.id, cover_letter="Hi"
    )
    with pytest.raises(NotFoundException):
        await engine.submit(world.student, bad_supervisor)

    job = await job_crud.get(db_session, world.job_id)
    job.status = "closed"
    await db_session.commit()
    with pytest.raises(InvalidStateException):
        await engine.submit(world.student, apply_to(world))


# ==================== 导师审核 ====================

@pytest.mark.asyncio
async def test_only_assigned_supervisor_can_review(engine, world, db_session):
    other = await add_user(db_session, Role.SUPERVISOR, "Other")
    application = await engine.submit(world.student, apply_to(world))

    with pytest.raises(AuthorizationException):
        await engine.supervisor_review(other, application.id, APPROVE)


@pytest.mark.asyncio
async def test_reject_requires_feedback(engine, world):
    application = await engine.submit(world.student, apply_to(world))

    with pytest.raises(ValidationException):
        await engine.supervisor_review(
            world.supervisor, application.id,
            SupervisorReviewRequest(decision=SupervisorDecision.REJECT, feedback="   "),
        )
    assert application.supervisor_status == "pending"


@pytest.mark.asyncio
async def test_review_only_when_pending(engine, world):
    application = await approved_application(engine, world)
    assert application.overall_status == "supervisor_approved"
    assert application.supervisor_reviewed_at is not None

    with pytest.raises(InvalidStateException):
        await engine.supervisor_review(world.supervisor, application.id, APPROVE)


@pytest.mark.asyncio
async def test_reject_and_resubmit(engine, world, db_session):
    application = await engine.submit(world.student, apply_to(world))
    application = await engine.supervisor_review(
        world.supervisor, application.id,
        SupervisorReviewRequest(
            decision=SupervisorDecision.REJECT,
            feedback="Cover letter is too short",
            requested_fixes=["cover_letter"],
        ),
    )
    assert application.overall_status == "supervisor_changes_requested"
    assert application.supervisor_status == "rejected"
    assert application.rejection_feedback["feedback"] == "Cover letter is too short"

    outsider = await add_user(db_session, Role.STUDENT, "Outsider")
    with pytest.raises(AuthorizationException):
        await engine.resubmit(outsider, application.id, ResubmitRequest(cover_letter="x"))

    application = await engine.resubmit(
        world.student, application.id,
        ResubmitRequest(cover_letter="A much longer cover letter.", note="expanded"),
    )
    assert application.overall_status == "resubmitted"
    assert application.supervisor_status == "pending"
    assert application.resubmission_count == 1
    assert application.rejection_feedback is None
    assert application.cover_letter == "A much longer cover letter."
    assert [r["type"] for r in application.revisions] == ["initial", "resubmission"]

    # 已是 pending，不能再次重新提交
    with pytest.raises(InvalidStateException):
        await engine.resubmit(world.student, application.id, ResubmitRequest())

    application = await engine.approve_resubmission(world.supervisor, application.id)
    assert application.overall_status == "supervisor_approved"


# ==================== 企业审核 ====================

@pytest.mark.asyncio
async def test_company_requires_supervisor_approval(engine, world):
    application = await engine.submit(world.student, apply_to(world))

    with pytest.raises(InvalidStateException):
        await engine.company_review(world.company, application.id, OPEN)
    with pytest.raises(InvalidStateException):
        await engine.schedule_interview(
            world.company, application.id,
            InterviewScheduleRequest(date=datetime(2026, 1, 10, 10, 0)),
        )


@pytest.mark.asyncio
async def test_only_owning_company_can_review(engine, world, db_session):
    other = await add_user(db_session, Role.COMPANY, "Globex")
    application = await approved_application(engine, world)

    with pytest.raises(AuthorizationException):
        await engine.company_review(other, application.id, OPEN)


@pytest.mark.asyncio
async def test_accept_requires_open_review(engine, world):
    application = await approved_application(engine, world)

    with pytest.raises(InvalidStateException):
        await engine.company_review(world.company, application.id, ACCEPT)

    application = await engine.company_review(world.company, application.id, OPEN)
    assert application.overall_status == "company_review"
    with pytest.raises(InvalidStateException):
        await engine.company_review(world.company, application.id, OPEN)


@pytest.mark.asyncio
async def test_hire_side_effects(engine, world, db_session):
    # 学生同时申请另一岗位
    second_job = await job_crud.create(db_session, obj_in={
        "title": "Data Intern", "company_id": world.company.id, "company_name": "Acme Ltd",
    })
    other_application = await engine.submit(world.student, apply_to(world, job_id=second_job.id))

    application = await approved_application(engine, world)
    await engine.company_review(world.company, application.id, OPEN)
    start = datetime(2026, 2, 1)
    application = await engine.company_review(
        world.company, application.id,
        CompanyReviewRequest(
            decision=CompanyDecision.ACCEPT,
            comments="Welcome aboard",
            start_date=start,
            end_date=start + timedelta(days=90),
        ),
    )

    assert application.overall_status == "approved"
    assert application.company_status == "hired"
    assert application.hired_at is not None
    assert application.start_date is not None

    job = await job_crud.get(db_session, world.job_id)
    assert job.hired_count == 1
    assert job.status == "closed"

    other_application = await application_crud.get(db_session, other_application.id)
    assert other_application.overall_status == "rejected"
    assert other_application.company_comments == "Student hired for another position"

    # 终态不再接受流转
    with pytest.raises(InvalidStateException):
        await engine.company_review(
            world.company, application.id, CompanyReviewRequest(decision=CompanyDecision.REJECT)
        )


@pytest.mark.asyncio
async def test_accept_refused_once_job_is_full(engine, world, db_session):
    other = await add_user(db_session, Role.STUDENT, "Hamza")
    first = await approved_application(engine, world)
    second = await engine.submit(other, apply_to(world))
    await engine.supervisor_review(world.supervisor, second.id, APPROVE)
    await engine.company_review(world.company, first.id, OPEN)
    await engine.company_review(world.company, second.id, OPEN)

    await engine.company_review(world.company, first.id, ACCEPT)
    with pytest.raises(InvalidStateException):
        await engine.company_review(world.company, second.id, ACCEPT)

    second = await application_crud.get(db_session, second.id)
    assert second.overall_status == "company_review"
    job = await job_crud.get(db_session, world.job_id)
    assert job.hired_count == 1


@pytest.mark.asyncio
async def test_accept_checks_current_hire_count_not_loaded_one(engine, world, db_session):
    """另一请求已占满名额，本请求持有的岗位对象仍显示 0/1"""
    application = await approved_application(engine, world)
    await engine.company_review(world.company, application.id, OPEN)
    job = await job_crud.get(db_session, world.job_id)
    assert job.hired_count == 0

    await db_session.execute(
        update(Job)
        .where(Job.id == world.job_id)
        .values(hired_count=1)
        .execution_options(synchronize_session=False)
    )
    assert job.hired_count == 0

    with pytest.raises(InvalidStateException):
        await engine.company_review(world.company, application.id, ACCEPT)

    application = await application_crud.get(db_session, application.id)
    assert application.overall_status == "company_review"
    job = await job_crud.get(db_session, world.job_id)
    assert job.hired_count == 1


@pytest.mark.asyncio
async def test_reserve_hire_never_exceeds_limit(world, db_session):
    job = await job_crud.get(db_session, world.job_id)

    first = await job_crud.reserve_hire(db_session, db_obj=job)
    second = await job_crud.reserve_hire(db_session, db_obj=job)

    assert first is True
    assert second is False
    assert job.hired_count == 1
    assert job.status == "closed"


@pytest.mark.asyncio
async def test_hired_student_cannot_apply_again(engine, world, db_session):
    roomy_job = await job_crud.create(db_session, obj_in={
        "title": "Platform Intern", "company_id": world.company.id,
        "company_name": "Acme Ltd", "application_limit": 3,
    })
    other_job = await job_crud.create(db_session, obj_in={
        "title": "Data Intern", "company_id": world.company.id,
        "company_name": "Acme Ltd", "application_limit": 3,
    })
    application = await engine.submit(world.student, apply_to(world, job_id=roomy_job.id))
    await engine.supervisor_review(world.supervisor, application.id, APPROVE)
    await engine.company_review(world.company, application.id, OPEN)
    await engine.company_review(world.company, application.id, ACCEPT)

    with pytest.raises(ConflictException):
        await engine.submit(world.student, apply_to(world, job_id=roomy_job.id))
    with pytest.raises(ConflictException):
        await engine.submit(world.student, apply_to(world, job_id=other_job.id))

    applications = await application_crud.get_scoped(db_session, student_id=world.student.id)
    assert [a.overall_status for a in applications] == ["approved"]
    roomy_job = await job_crud.get(db_session, roomy_job.id)
    assert roomy_job.hired_count == 1


@pytest.mark.asyncio
async def test_can_apply_again_after_company_rejection(engine, world):
    application = await approved_application(engine, world)
    await engine.company_review(world.company, application.id, OPEN)
    await engine.company_review(
        world.company, application.id, CompanyReviewRequest(decision=CompanyDecision.REJECT)
    )

    again = await engine.submit(world.student, apply_to(world))

    assert again.id != application.id
    assert again.overall_status == "submitted"


def test_accept_dates_without_timezone_are_utc():
    request = CompanyReviewRequest.model_validate(
        {"decision": "accept", "start_date": "2026-02-01", "end_date": "2026-05-01T09:30:00"}
    )

    assert request.start_date == datetime(2026, 2, 1, tzinfo=timezone.utc)
    assert request.end_date == datetime(2026, 5, 1, 9, 30, tzinfo=timezone.utc)

    aware = CompanyReviewRequest(
        decision=CompanyDecision.ACCEPT,
        start_date=datetime(2026, 2, 1, 5, tzinfo=timezone(timedelta(hours=5))),
    )
    assert aware.start_date.utcoffset() == timedelta(hours=5)


@pytest.mark.asyncio
async def test_hire_with_plain_dates(engine, world):
    application = await approved_application(engine, world)
    await engine.company_review(world.company, application.id, OPEN)

    application = await engine.company_review(
        world.company, application.id,
        CompanyReviewRequest.model_validate(
            {"decision": "accept", "start_date": "2026-02-01", "end_date": "2026-05-01"}
        ),
    )

    assert application.overall_status == "approved"
    assert application.start_date.date() == date(2026, 2, 1)
    assert application.end_date.date() == date(2026, 5, 1)


@pytest.mark.asyncio
async def test_hire_without_dates_keeps_them_empty(engine, world):
    application = await approved_application(engine, world)
    await engine.company_review(world.company, application.id, OPEN)
    application = await engine.company_review(world.company, application.id, ACCEPT)

    assert application.start_date is None
    assert application.end_date is None


@pytest.mark.asyncio
async def test_company_reject_is_terminal(engine, world):
    application = await approved_application(engine, world)
    await engine.company_review(world.company, application.id, OPEN)
    application = await engine.company_review(
        world.company, application.id,
        CompanyReviewRequest(decision=CompanyDecision.REJECT, comments="Position filled"),
    )
    assert application.overall_status == "rejected"
    assert application.rejected_at is not None

    with pytest.raises(InvalidStateException):
        await engine.company_review(world.company, application.id, ACCEPT)


# ==================== 面试 ====================

@pytest.mark.asyncio
async def test_schedule_interview_notifies_student_and_supervisor(engine, world, email_service):
    application = await approved_application(engine, world)
    await engine.company_review(world.company, application.id, OPEN)
    email_service.outbox.clear()

    application = await engine.schedule_interview(
        world.company, application.id,
        InterviewScheduleRequest(
            date=datetime(2026, 1, 10, 14, 30),
            mode=InterviewMode.REMOTE,
            location="https://meet.example.com/abc",
        ),
    )

    assert application.overall_status == "interview_scheduled"
    assert application.company_status == "interview_scheduled"
    assert application.supervisor_status == "approved"
    assert application.interview_details["time"] == "14:30"
    assert application.interview_details["mode"] == "remote"
    assert {mail["to"] for mail in email_service.outbox} == {world.student.email, world.supervisor.email}

    # 可以重新安排，之后仍可录用
    await engine.schedule_interview(
        world.company, application.id,
        InterviewScheduleRequest(date=datetime(2026, 1, 12, 9, 0)),
    )
    application = await engine.company_review(world.company, application.id, ACCEPT)
    assert application.overall_status == "approved"


@pytest.mark.asyncio
async def test_notification_failure_does_not_block_transition(engine, world, email_service):
    email_service.fail = True

    application = await approved_application(engine, world)
    await engine.company_review(world.company, application.id, OPEN)
    application = await engine.schedule_interview(
        world.company, application.id,
        InterviewScheduleRequest(date=datetime(2026, 1, 10, 10, 0)),
    )

    assert application.overall_status == "interview_scheduled"
    assert email_service.outbox == []


# ==================== 条件更新 ====================

@pytest.mark.asyncio
async def test_stale_conditional_update_fails(engine, world, db_session):
    application = await engine.submit(world.student, apply_to(world))

    first = await application_crud.conditional_update(
        db_session,
        db_obj=application,
        expected={"supervisor_status": "pending"},
        values={"supervisor_status": "approved", "overall_status": "supervisor_approved"},
    )
    second = await application_crud.conditional_update(
        db_session,
        db_obj=application,
        expected={"supervisor_status": "pending"},
        values={"supervisor_status": "rejected", "overall_status": "supervisor_changes_requested"},
    )

    assert first is True
    assert second is False
    assert application.supervisor_status == "approved"
