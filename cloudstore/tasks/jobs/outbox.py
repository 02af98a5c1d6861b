from loguru import logger

from cloudstore.messaging.producer import EventPublisher
from cloudstore.services.outbox_service import OutboxCleaner, OutboxDispatcher
from cloudstore.tasks.base import async_task, get_async_db_session


# 失败不重试，下一轮调度会重新扫描未处理事件
@async_task(name="tasks.outbox.dispatch", queue="scheduled", max_retries=0)
async def dispatch_outbox_task(self):
    """
    发布一批发件箱事件到消息总线
    """
    async for session in get_async_db_session():
        dispatcher = OutboxDispatcher(session, EventPublisher())
        published = await dispatcher.dispatch_batch()
        return {"published": published}


@async_task(name="tasks.outbox.cleanup", queue="scheduled", max_retries=2)
async def cleanup_outbox_task(self):
    """
    删除超过保留期的已处理事件
    """
    async for session in get_async_db_session():
        deleted = await OutboxCleaner(session).purge()
        logger.info(f"发件箱清理任务完成: {deleted}")
        return {"deleted": deleted}
