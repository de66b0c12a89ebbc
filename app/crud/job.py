"""
岗位 CRUD 操作
"""
from typing import List
from sqlalchemy import case, select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.job import Job, JobStatus
from app.models.base import utc_now
from .base import CRUDBase


class CRUDJob(CRUDBase[Job]):
    """岗位 CRUD 操作类"""

    async def get_by_status(
        self,
        db: AsyncSession,
        status: str,
        *,
        skip: int = 0,
        limit: int = 100
    ) -> List[Job]:
        """获取某状态的岗位"""
        result = await db.execute(
            select(self.model)
            .where(self.model.status == status)
            .order_by(self.model.created_at.desc())
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def count_by_status(self, db: AsyncSession, status: str) -> int:
        result = await db.execute(
            select(func.count())
            .select_from(self.model)
            .where(self.model.status == status)
        )
        return result.scalar() or 0

    async def reserve_hire(self, db: AsyncSession, *, db_obj: Job) -> bool:
        """
        占用一个录用名额：仅当岗位开放且未满时录用人数 +1，满员即关闭

        返回是否占用成功；失败说明岗位已满或已被并发请求占满。
        """
        result = await db.execute(
            update(self.model)
            .where(
                self.model.id == db_obj.id,
                self.model.status == JobStatus.ACTIVE.value,
                self.model.hired_count < self.model.application_limit,
            )
            .values(
                hired_count=self.model.hired_count + 1,
                status=case(
                    (self.model.hired_count + 1 >= self.model.application_limit, JobStatus.CLOSED.value),
                    else_=self.model.status,
                ),
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        await db.refresh(db_obj)
        return result.rowcount == 1


job_crud = CRUDJob(Job)
