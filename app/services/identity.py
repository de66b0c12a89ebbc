"""
学生身份解析

同一名学生可能只有通用账号（users），也可能已有详细档案（students）。
所有需要学生身份的地方都通过 IdentityResolver 读取，不再各自实现回退逻辑。
"""
from typing import Optional, Union

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import NotFoundException
from app.core.security import Role
from app.crud import user_crud, student_crud
from app.models.user import User, StudentProfile, StudentView, IdentitySource

DEPARTMENT_NAMES = {
    "computer-science": "Computer Science",
    "software-engineering": "Software Engineering",
    "information-technology": "Information Technology",
    "electrical-engineering": "Electrical Engineering",
    "mechanical-engineering": "Mechanical Engineering",
    "civil-engineering": "Civil Engineering",
    "business-administration": "Business Administration",
    "management-sciences": "Management Sciences",
    "mathematics": "Mathematics",
    "physics": "Physics",
    "chemistry": "Chemistry",
}

SEMESTER_NAMES = {
    "1": "1st",
    "2": "2nd",
    "3": "3rd",
    "4": "4th",
    "5": "5th",
    "6": "6th",
    "7": "7th",
    "8": "8th",
}


def map_department(code: Optional[str]) -> Optional[str]:
    """院系代码 → 院系名称；已是名称或未知代码时原样返回"""
    if not code:
        return None
    return DEPARTMENT_NAMES.get(code.strip().lower(), code)


def map_semester(code: Optional[str]) -> Optional[str]:
    if not code:
        return None
    return SEMESTER_NAMES.get(str(code).strip(), code)


def profile_view(profile: StudentProfile) -> StudentView:
    return StudentView(
        id=profile.id,
        full_name=profile.full_name,
        email=profile.email,
        roll_number=profile.roll_number,
        department=profile.department,
        semester=profile.semester,
        cgpa=profile.cgpa,
        phone_number=profile.phone_number,
        source=IdentitySource.PROFILE,
    )


def account_view(account: User) -> StudentView:
    """由通用账号合成档案视图（不落库）"""
    return StudentView(
        id=account.id,
        full_name=account.name,
        email=account.email,
        roll_number=account.registration_number,
        department=map_department(account.department),
        semester=map_semester(account.semester),
        source=IdentitySource.ACCOUNT,
    )


class IdentityResolver:
    """学生身份解析器：详细档案优先，通用账号兜底"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def resolve(self, id: str) -> StudentView:
        profile = await student_crud.get(self.db, id)
        if profile:
            return profile_view(profile)

        account = await user_crud.get(self.db, id)
        if account and account.role == Role.STUDENT.value:
            # 已迁移的账号读取档案字段，但保留账号 ID
            profile = await student_crud.get_by_email(self.db, account.email)
            if profile:
                return profile_view(profile).model_copy(update={"id": account.id})
            return account_view(account)

        raise NotFoundException(f"Student not found: {id}")

    async def resolve_by_email(self, email: str) -> StudentView:
        profile = await student_crud.get_by_email(self.db, email)
        if profile:
            return profile_view(profile)

        account = await user_crud.get_by_email(self.db, email)
        if account and account.role == Role.STUDENT.value:
            return account_view(account)

        raise NotFoundException(f"Student not found: {email}")

    async def materialize(self, account: Union[User, StudentView]) -> StudentProfile:
        """
        由通用账号生成详细档案（幂等）

        同一邮箱已有档案时直接返回；students.email 唯一约束保证至多一份档案。
        """
        existing = await student_crud.get_by_email(self.db, account.email)
        if existing:
            return existing

        view = account_view(account) if isinstance(account, User) else account
        profile = await student_crud.create(self.db, obj_in={
            "full_name": view.full_name,
            "email": view.email,
            "roll_number": view.roll_number,
            "department": view.department,
            "semester": view.semester,
        })

        logger.info("已为 {} 生成学生档案: {}", view.email, profile.id)
        return profile
