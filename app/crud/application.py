"""
实习申请 CRUD 操作
"""
from typing import Optional, List
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.application import Application, ApplicationState, TERMINAL_STATES
from app.models.base import utc_now
from .base import CRUDBase


class CRUDApplication(CRUDBase[Application]):
    """实习申请 CRUD 操作类"""

    def _scoped(self, query, *, student_id=None, supervisor_id=None, company_id=None, status=None):
        if student_id:
            query = query.where(self.model.student_id == student_id)
        if supervisor_id:
            query = query.where(self.model.supervisor_id == supervisor_id)
        if company_id:
            query = query.where(self.model.company_id == company_id)
        if status:
            query = query.where(self.model.overall_status == status)
        return query

    async def get_scoped(
        self,
        db: AsyncSession,
        *,
        student_id: Optional[str] = None,
        supervisor_id: Optional[str] = None,
        company_id: Optional[str] = None,
        status: Optional[str] = None,
        supervisor_approved_only: bool = False,
        skip: int = 0,
        limit: int = 100
    ) -> List[Application]:
        """按参与方筛选申请（分页）"""
        query = self._scoped(
            select(self.model),
            student_id=student_id,
            supervisor_id=supervisor_id,
            company_id=company_id,
            status=status,
        )
        if supervisor_approved_only:
            query = query.where(self.model.supervisor_status == "approved")
        result = await db.execute(
            query.order_by(self.model.created_at.desc()).offset(skip).limit(limit)
        )
        return list(result.scalars().all())

    async def count_scoped(
        self,
        db: AsyncSession,
        *,
        student_id: Optional[str] = None,
        supervisor_id: Optional[str] = None,
        company_id: Optional[str] = None,
        status: Optional[str] = None,
        supervisor_approved_only: bool = False
    ) -> int:
        """按参与方统计申请数量"""
        query = self._scoped(
            select(func.count()).select_from(self.model),
            student_id=student_id,
            supervisor_id=supervisor_id,
            company_id=company_id,
            status=status,
        )
        if supervisor_approved_only:
            query = query.where(self.model.supervisor_status == "approved")
        result = await db.execute(query)
        return result.scalar() or 0

    async def get_existing_for_job(
        self,
        db: AsyncSession,
        student_id: str,
        job_id: str
    ) -> Optional[Application]:
        """获取学生对某岗位未被拒绝的申请（含已录用）"""
        result = await db.execute(
            select(self.model)
            .where(
                self.model.student_id == student_id,
                self.model.job_id == job_id,
                self.model.overall_status != ApplicationState.REJECTED.value,
            )
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_hired_for_student(
        self,
        db: AsyncSession,
        student_id: str
    ) -> Optional[Application]:
        """获取学生已录用的申请"""
        result = await db.execute(
            select(self.model)
            .where(
                self.model.student_id == student_id,
                self.model.overall_status == "approved",
            )
            .order_by(self.model.hired_at.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_hired_for_supervisor(
        self,
        db: AsyncSession,
        supervisor_id: str
    ) -> List[Application]:
        """获取导师名下所有已录用的申请"""
        result = await db.execute(
            select(self.model)
            .where(
                self.model.supervisor_id == supervisor_id,
                self.model.overall_status == "approved",
            )
            .order_by(self.model.hired_at.desc())
        )
        return list(result.scalars().all())

    async def reject_other_open(
        self,
        db: AsyncSession,
        *,
        student_id: str,
        keep_id: str,
        comments: str
    ) -> int:
        """学生被录用后，终止其其余未终结的申请"""
        now = utc_now()
        result = await db.execute(
            update(self.model)
            .where(
                self.model.student_id == student_id,
                self.model.id != keep_id,
                self.model.overall_status.not_in(list(TERMINAL_STATES)),
            )
            .values(
                company_status="rejected",
                overall_status="rejected",
                company_comments=comments,
                rejected_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0


application_crud = CRUDApplication(Application)
