from datetime import datetime
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cloudstore.core.config import settings
from cloudstore.core.exceptions import CloudStoreException
from cloudstore.db.repositories.uploaded_file_repository import \
    UploadedFileRepository
from cloudstore.schemas.report import FileStatus
from cloudstore.storage.base import ObjectStore
from cloudstore.utils.datetime import now_utc

RETENTION_STATUSES = (FileStatus.COMPLETED, FileStatus.FAILED)


class RetentionService:
    """
    删除已完成/失败且超过保留期的文档（对象和记录）
    """

    def __init__(self, db_session: AsyncSession, store: ObjectStore):
        self.db = db_session
        self.store = store
        self.file_repo = UploadedFileRepository(db_session)

    async def cleanup_expired_files(self, now: Optional[datetime] = None) -> int:
        """
        逐条清理过期文档，单条失败只记录日志并回滚该条，不影响其他记录

        返回:
            成功删除的记录数
        """
        threshold = (now or now_utc()) - settings.FILES_RETENTION
        files = await self.file_repo.find_by_status_in_and_created_before(
            RETENTION_STATUSES, threshold
        )
        targets = [(file.file_id, file.full_path) for file in files]

        deleted = 0
        for file_id, full_path in targets:
            try:
                await run_in_threadpool(self.store.remove, full_path)
                file = await self.file_repo.get_by_id(file_id)
                if file is not None:
                    await self.file_repo.delete(db_obj=file)
                await self.db.commit()
                deleted += 1
            except (CloudStoreException, SQLAlchemyError) as e:
                logger.error(f"清理过期文档失败: file_id={file_id}, path={full_path}, 错误: {str(e)}")
                await self.db.rollback()

        logger.info(f"过期文档清理完成: 删除 {deleted}/{len(targets)} 条")
        return deleted
