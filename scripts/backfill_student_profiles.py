"""
数据补全脚本：为只有通用账号的学生生成详细档案

已存在同邮箱档案的学生会被跳过，可重复执行。

用法：
    python scripts/backfill_student_profiles.py
"""
import asyncio
import sys
from pathlib import Path

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

# 确保项目根目录在 Python 路径中
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from app.core.database import AsyncSessionLocal, close_db, init_db  # noqa: E402
from app.core.security import Role  # noqa: E402
from app.crud import student_crud, user_crud  # noqa: E402
from app.services.identity import IdentityResolver  # noqa: E402


async def backfill_profiles(db: AsyncSession) -> int:
    """返回新生成的档案数量"""
    resolver = IdentityResolver(db)
    created = 0
    for account in await user_crud.get_by_role(db, Role.STUDENT.value):
        if await student_crud.get_by_email(db, account.email):
            continue
        await resolver.materialize(account)
        created += 1
    return created


async def main():
    await init_db()
    try:
        async with AsyncSessionLocal() as session:
            created = await backfill_profiles(session)
            await session.commit()
        logger.info("补全完成，新生成 {} 份学生档案", created)
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(main())
