from datetime import datetime
from typing import Any, Dict, List, Sequence
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from cloudstore.db.models.outbox_event import OutboxEvent
from cloudstore.db.repositories.base_repository import BaseRepository


class OutboxRepository(BaseRepository[OutboxEvent, Any]):
    """
    发件箱仓库类
    """

    def __init__(self, db_session: AsyncSession):
        super().__init__(db_session, OutboxEvent)

    async def add_event(
        self, file_id: UUID, payload: Dict[str, Any], created_at: datetime
    ) -> OutboxEvent:
        """
        在调用方事务中追加一条未处理事件
        """
        return await self.create(
            obj_in={
                "file_id": file_id,
                "payload": payload,
                "created_at": created_at,
                "processed": False,
            }
        )

    async def lock_unprocessed_batch(self, limit: int) -> List[OutboxEvent]:
        """
        锁定一批未处理事件，跳过其他调度器已锁定的行
        """
        query = (
            select(OutboxEvent)
            .where(OutboxEvent.processed.is_(False))
            .order_by(OutboxEvent.created_at, OutboxEvent.id)
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def mark_processed(self, ids: Sequence[int]) -> int:
        if not ids:
            return 0
        stmt = (
            update(OutboxEvent)
            .where(OutboxEvent.id.in_(list(ids)), OutboxEvent.processed.is_(False))
            .values(processed=True)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.flush()
        return result.rowcount

    async def delete_processed_before(self, threshold: datetime) -> int:
        """
        删除早于阈值的已处理事件，返回删除行数
        """
        stmt = (
            delete(OutboxEvent)
            .where(OutboxEvent.processed.is_(True), OutboxEvent.created_at < threshold)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        await self.db.flush()
        return result.rowcount
