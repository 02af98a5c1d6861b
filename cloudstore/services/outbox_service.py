from datetime import datetime
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool
from kombu.exceptions import KombuError
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from cloudstore.core.config import settings
from cloudstore.db.repositories.outbox_repository import OutboxRepository
from cloudstore.messaging.producer import EventPublisher
from cloudstore.monitoring.metrics import (OUTBOX_DISPATCHED,
                                           OUTBOX_PUBLISH_FAILURES)
from cloudstore.utils.datetime import now_utc


class OutboxDispatcher:
    """
    发件箱调度器

    每次调度在一个事务中锁定一批未处理事件（SKIP LOCKED），
    按 (created_at, id) 顺序发布，并把已发布的事件标记为已处理。
    提交前崩溃会导致重复发布（至少一次），消费方需幂等
    """

    def __init__(
        self,
        db_session: AsyncSession,
        publisher: EventPublisher,
        batch_size: Optional[int] = None,
    ):
        self.db = db_session
        self.publisher = publisher
        self.batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
        self.outbox_repo = OutboxRepository(db_session)

    async def dispatch_batch(self) -> int:
        """
        发布一批事件

        某条事件发布失败时结束本轮，之前已发布的事件仍会被标记

        返回:
            本轮标记为已处理的事件数
        """
        events = await self.outbox_repo.lock_unprocessed_batch(self.batch_size)
        if not events:
            await self.db.commit()
            return 0

        published: List[int] = []
        for event in events:
            try:
                await run_in_threadpool(
                    self.publisher.publish_file_uploaded, event.file_id, event.payload
                )
            except (KombuError, OSError) as e:
                OUTBOX_PUBLISH_FAILURES.inc()
                logger.error(f"发布发件箱事件失败，本轮结束: id={event.id}, file_id={event.file_id}, 错误: {str(e)}")
                break
            published.append(event.id)

        await self.outbox_repo.mark_processed(published)
        await self.db.commit()

        OUTBOX_DISPATCHED.inc(len(published))
        if published:
            logger.info(f"发件箱调度完成: 发布 {len(published)}/{len(events)} 条事件")
        return len(published)


class OutboxCleaner:
    """
    清理已处理且超过保留期的发件箱事件
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.outbox_repo = OutboxRepository(db_session)

    async def purge(self, now: Optional[datetime] = None) -> int:
        threshold = (now or now_utc()) - settings.OUTBOX_RETENTION
        deleted = await self.outbox_repo.delete_processed_before(threshold)
        await self.db.commit()
        logger.info(f"发件箱清理完成: 删除 {deleted} 条早于 {threshold.isoformat()} 的事件")
        return deleted
