"""
测试配置文件

提供测试用的 fixtures：内存数据库、测试客户端、邮件替身、测试数据工厂等
"""
from typing import AsyncGenerator, List, Optional
from dataclasses import dataclass, field

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  注册所有表
from app.core.config import Settings
from app.core.database import get_db
from app.core.security import Principal, Role, create_access_token
from app.main import create_app
from app.models.evaluation import COMPANY_CRITERIA, SUPERVISOR_CRITERIA
from app.models.user import StudentProfile, User
from app.services.email import EmailService, get_email_service


# ========== 邮件替身 ==========

class RecordingEmailService(EmailService):
    """记录待发邮件而不真正发送；fail=True 时模拟 SMTP 故障"""

    def __init__(self):
        super().__init__(Settings(_env_file=None, email_enabled=True))
        self.outbox: List[dict] = []
        self.fail = False

    async def deliver(self, to: str, subject: str, contents: str) -> bool:
        if self.fail:
            raise RuntimeError("SMTP server unavailable")
        self.outbox.append({"to": to, "subject": subject, "contents": contents})
        return True


# ========== 测试数据工厂 ==========

@dataclass
class Actor:
    """测试中的调用者：账号信息 + 对应令牌"""
    id: str
    role: Role
    name: str
    email: str

    @property
    def headers(self) -> dict:
        token = create_access_token(self.id, self.role)
        return {"Authorization": f"Bearer {token}"}

    @property
    def principal(self) -> Principal:
        return Principal(id=self.id, role=self.role, name=self.name, email=self.email)


@dataclass
class Internship:
    """一次完整录用涉及的各方"""
    student: Actor
    supervisor: Actor
    company: Actor
    job: dict
    application: dict


@dataclass
class DataFactory:
    """
    测试数据工厂类

    账号与档案直接写库，岗位、申请、评价走 API，
    字段变更时只需修改此处
    """
    client: AsyncClient
    db: AsyncSession
    _counter: int = field(default=0, repr=False)

    def _next_id(self) -> str:
        """生成唯一后缀，避免数据冲突"""
        self._counter += 1
        return str(self._counter)

    # ---------- 账号 ----------

    async def create_user(self, role: Role, **overrides) -> Actor:
        suffix = self._next_id()
        user = User(
            name=f"Test {role.value.title()} {suffix}",
            email=f"{role.value}{suffix}@example.com",
            role=role.value,
            **overrides,
        )
        self.db.add(user)
        await self.db.commit()
        return Actor(id=user.id, role=role, name=user.name, email=user.email)

    async def create_student(self, **overrides) -> Actor:
        suffix = self._next_id()
        data = {
            "department": "computer-science",
            "semester": "7",
            "registration_number": f"REG-{suffix}",
            **overrides,
        }
        return await self.create_user(Role.STUDENT, **data)

    async def create_supervisor(self, **overrides) -> Actor:
        return await self.create_user(Role.SUPERVISOR, **overrides)

    async def create_company(self, **overrides) -> Actor:
        suffix = self._next_id()
        data = {"company_name": f"Test Company {suffix}", **overrides}
        return await self.create_user(Role.COMPANY, **data)

    async def create_profile(self, **overrides) -> Actor:
        """只有详细档案、没有通用账号的学生"""
        suffix = self._next_id()
        profile = StudentProfile(
            full_name=f"Profile Student {suffix}",
            email=f"profile{suffix}@example.com",
            roll_number=f"ROLL-{suffix}",
            department="Computer Science",
            semester="7th",
            cgpa=3.5,
            **overrides,
        )
        self.db.add(profile)
        await self.db.commit()
        return Actor(id=profile.id, role=Role.STUDENT, name=profile.full_name, email=profile.email)

    # ---------- 岗位与申请 ----------

    async def create_job(self, company: Optional[Actor] = None, **overrides) -> dict:
        """发布岗位，返回完整响应数据"""
        if company is None:
            company = await self.create_company()
        suffix = self._next_id()
        data = {
            "title": f"Backend Intern {suffix}",
            "description": "Test internship",
            "location": "Remote",
            "duration": "3 months",
            "application_limit": 2,
            **overrides,
        }
        resp = await self.client.post("/api/v1/jobs", json=data, headers=company.headers)
        assert resp.status_code == 200, f"创建岗位失败: {resp.text}"
        return resp.json()["data"]

    async def submit_application(
        self,
        student: Actor,
        supervisor: Actor,
        job: dict,
        **overrides
    ) -> dict:
        data = {
            "job_id": job["id"],
            "supervisor_id": supervisor.id,
            "cover_letter": "I would like to join your team.",
            **overrides,
        }
        resp = await self.client.post("/api/v1/applications", json=data, headers=student.headers)
        assert resp.status_code == 200, f"提交申请失败: {resp.text}"
        return resp.json()["data"]

    async def supervisor_review(self, supervisor: Actor, application_id: str, **body) -> dict:
        body = {"decision": "approve", **body}
        resp = await self.client.put(
            f"/api/v1/applications/{application_id}/supervisor-review",
            json=body,
            headers=supervisor.headers,
        )
        assert resp.status_code == 200, f"导师审核失败: {resp.text}"
        return resp.json()["data"]

    async def company_review(self, company: Actor, application_id: str, decision: str, **body) -> dict:
        resp = await self.client.put(
            f"/api/v1/applications/{application_id}/company-review",
            json={"decision": decision, **body},
            headers=company.headers,
        )
        assert resp.status_code == 200, f"企业审核失败: {resp.text}"
        return resp.json()["data"]

    async def create_hired_internship(self, student: Optional[Actor] = None, **accept_body) -> Internship:
        """走完 提交 → 导师通过 → 企业审核 → 录用，返回各方"""
        student = student or await self.create_student()
        supervisor = await self.create_supervisor()
        company = await self.create_company()
        job = await self.create_job(company)

        application = await self.submit_application(student, supervisor, job)
        await self.supervisor_review(supervisor, application["id"])
        await self.company_review(company, application["id"], "open")
        application = await self.company_review(company, application["id"], "accept", **accept_body)
        return Internship(student, supervisor, company, job, application)

    # ---------- 评价 ----------

    async def evaluate_by_supervisor(self, internship: Internship, scores: Optional[List[int]] = None) -> dict:
        """导师评价，默认每项 9 分（共 54 分）"""
        scores = scores or [9] * len(SUPERVISOR_CRITERIA)
        data = {"application_id": internship.application["id"], **dict(zip(SUPERVISOR_CRITERIA, scores))}
        resp = await self.client.post(
            "/api/v1/evaluations/supervisor", json=data, headers=internship.supervisor.headers
        )
        assert resp.status_code == 200, f"导师评价失败: {resp.text}"
        return resp.json()["data"]

    async def evaluate_by_company(
        self,
        internship: Internship,
        scores: Optional[List[int]] = None,
        max_marks: int = 40
    ) -> dict:
        """企业评价，默认每项 3 分（共 30/40 分）"""
        scores = scores or [3] * len(COMPANY_CRITERIA)
        data = {
            "application_id": internship.application["id"],
            "max_marks": max_marks,
            **dict(zip(COMPANY_CRITERIA, scores)),
        }
        resp = await self.client.post(
            "/api/v1/evaluations/company", json=data, headers=internship.company.headers
        )
        assert resp.status_code == 200, f"企业评价失败: {resp.text}"
        return resp.json()["data"]


# 使用内存 SQLite 作为测试数据库，StaticPool 保证所有连接共享同一个库
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# 创建测试引擎
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# 创建测试会话工厂
TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


@pytest_asyncio.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    为每个测试函数提供独立的数据库会话

    每个测试前创建表，测试后删除表，确保测试隔离
    """
    # 创建所有表
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    # 提供会话
    async with TestSessionLocal() as session:
        yield session

    # 删除所有表
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)


@pytest.fixture
def email_service() -> RecordingEmailService:
    """邮件替身，测试可检查 outbox 或设置 fail"""
    return RecordingEmailService()


@pytest_asyncio.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    email_service: RecordingEmailService,
) -> AsyncGenerator[AsyncClient, None]:
    """
    提供测试用的 HTTP 客户端

    覆盖 get_db 与邮件服务依赖
    """
    app = create_app()

    # 覆盖数据库依赖
    async def override_get_db():
        try:
            yield db_session
            await db_session.commit()
        except Exception:
            await db_session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_service] = lambda: email_service

    # 创建异步测试客户端
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    # 清理依赖覆盖
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def factory(client: AsyncClient, db_session: AsyncSession) -> DataFactory:
    """提供测试数据工厂实例"""
    return DataFactory(client=client, db=db_session)
