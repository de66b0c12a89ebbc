"""
账号与学生档案 CRUD 操作
"""
from typing import List, Optional
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.user import User, StudentProfile
from .base import CRUDBase


class CRUDUser(CRUDBase[User]):
    """通用账号 CRUD 操作类"""

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[User]:
        """按邮箱获取账号（不区分大小写）"""
        result = await db.execute(
            select(self.model).where(func.lower(self.model.email) == email.strip().lower())
        )
        return result.scalars().first()

    async def get_by_role(self, db: AsyncSession, role: str) -> List[User]:
        """获取某角色的全部账号"""
        result = await db.execute(
            select(self.model)
            .where(self.model.role == role)
            .order_by(self.model.created_at)
        )
        return list(result.scalars().all())


class CRUDStudentProfile(CRUDBase[StudentProfile]):
    """学生档案 CRUD 操作类"""

    async def get_by_email(self, db: AsyncSession, email: str) -> Optional[StudentProfile]:
        """按邮箱获取档案（不区分大小写）"""
        result = await db.execute(
            select(self.model).where(func.lower(self.model.email) == email.strip().lower())
        )
        return result.scalars().first()


user_crud = CRUDUser(User)
student_crud = CRUDStudentProfile(StudentProfile)
