"""
实习评价 CRUD 操作
"""
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.evaluation import SupervisorEvaluation, InterneeEvaluation
from .base import CRUDBase


class CRUDSupervisorEvaluation(CRUDBase[SupervisorEvaluation]):
    """导师评价 CRUD 操作类"""

    async def get_by_pair(
        self,
        db: AsyncSession,
        student_id: str,
        supervisor_id: str
    ) -> Optional[SupervisorEvaluation]:
        """按 (学生, 导师) 获取评价"""
        result = await db.execute(
            select(self.model).where(
                self.model.student_id == student_id,
                self.model.supervisor_id == supervisor_id,
            )
        )
        return result.scalar_one_or_none()

    async def mark_sent(
        self,
        db: AsyncSession,
        *,
        db_obj: SupervisorEvaluation,
        sent_by: str,
        sent_at
    ) -> bool:
        """将最终成绩标记为已发布，仅在尚未发布时成功"""
        return await self.conditional_update(
            db,
            db_obj=db_obj,
            expected={"final_result_sent": False},
            values={
                "final_result_sent": True,
                "final_result_sent_at": sent_at,
                "final_result_sent_by": sent_by,
            },
        )


class CRUDInterneeEvaluation(CRUDBase[InterneeEvaluation]):
    """企业评价 CRUD 操作类"""

    async def get_by_application(
        self,
        db: AsyncSession,
        intern_id: str,
        application_id: str
    ) -> Optional[InterneeEvaluation]:
        """按 (实习生, 申请) 获取评价"""
        result = await db.execute(
            select(self.model).where(
                self.model.intern_id == intern_id,
                self.model.application_id == application_id,
            )
        )
        return result.scalar_one_or_none()


supervisor_evaluation_crud = CRUDSupervisorEvaluation(SupervisorEvaluation)
internee_evaluation_crud = CRUDInterneeEvaluation(InterneeEvaluation)
