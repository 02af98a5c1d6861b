from typing import Any, Dict

from cloudstore.schemas.report import FileStatusUpdatedEvent
from cloudstore.services.status_service import StatusService
from cloudstore.tasks.base import async_task, get_async_db_session
from cloudstore.tasks.celery import FILE_STATUS_QUEUE


@async_task(
    name="tasks.status.file_status_updated",
    queue=FILE_STATUS_QUEUE,
    max_retries=5,
)
async def file_status_updated_task(self, event: Dict[str, Any]):
    """
    消费状态更新事件

    参数:
        event: {fileId, status, notes, updatedAt}

    记录不存在时抛出异常，由 Celery 按退避策略重试
    """
    payload = FileStatusUpdatedEvent.model_validate(event)
    async for session in get_async_db_session():
        file = await StatusService(session).apply_status_update(payload)
        return {"file_id": str(file.file_id), "status": file.status.value}
