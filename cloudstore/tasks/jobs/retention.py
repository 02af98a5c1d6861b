from cloudstore.services.retention_service import RetentionService
from cloudstore.storage.factory import get_object_store
from cloudstore.tasks.base import async_task, get_async_db_session


@async_task(name="tasks.retention.cleanup_files", queue="scheduled", max_retries=1)
async def cleanup_expired_files_task(self):
    """
    清理已完成/失败且超过保留期的文档
    """
    async for session in get_async_db_session():
        deleted = await RetentionService(session, get_object_store()).cleanup_expired_files()
        return {"deleted": deleted}
