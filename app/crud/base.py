"""
CRUD 基类模块 - SQLModel 简化版

直接使用 SQLModel 对象，并提供"期望状态"条件更新
"""
from typing import Generic, TypeVar, Type, Optional, List, Any, Dict
from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel

from app.models.base import utc_now

ModelType = TypeVar("ModelType", bound=SQLModel)
CreateSchemaType = TypeVar("CreateSchemaType", bound=SQLModel)


class CRUDBase(Generic[ModelType]):
    """
    CRUD 基类 - 简化版

    直接操作 SQLModel 对象，减少样板代码
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get(self, db: AsyncSession, id: str) -> Optional[ModelType]:
        """根据 ID 获取单条记录"""
        result = await db.execute(
            select(self.model).where(self.model.id == id)
        )
        return result.scalar_one_or_none()

    async def get_multi(
        self,
        db: AsyncSession,
        *,
        skip: int = 0,
        limit: int = 100,
        order_by: Any = None
    ) -> List[ModelType]:
        """获取多条记录（分页）"""
        query = select(self.model)
        if order_by is not None:
            query = query.order_by(order_by)
        else:
            query = query.order_by(self.model.created_at.desc())
        query = query.offset(skip).limit(limit)
        result = await db.execute(query)
        return list(result.scalars().all())

    async def count(self, db: AsyncSession) -> int:
        """获取总记录数"""
        result = await db.execute(
            select(func.count()).select_from(self.model)
        )
        return result.scalar() or 0

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: CreateSchemaType | Dict[str, Any]
    ) -> ModelType:
        """
        创建记录

        支持传入 dict 或 Schema
        """
        if isinstance(obj_in, dict):
            db_obj = self.model(**obj_in)
        else:
            db_obj = self.model.model_validate(obj_in)

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)
        return db_obj

    async def conditional_update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        expected: Dict[str, Any],
        values: Dict[str, Any]
    ) -> bool:
        """
        条件更新：仅当记录当前持久化状态与 expected 一致时写入 values

        expected 的值可以是单个值或候选值集合（tuple/list/set/frozenset）。
        返回是否更新成功；失败时说明记录已被并发请求改变。
        """
        conditions = [self.model.id == db_obj.id]
        for field, value in expected.items():
            column = getattr(self.model, field)
            if isinstance(value, (tuple, list, set, frozenset)):
                conditions.append(column.in_(list(value)))
            else:
                conditions.append(column == value)

        stmt = (
            update(self.model)
            .where(*conditions)
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        await db.refresh(db_obj)
        return result.rowcount == 1
