from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cloudstore.db.models.uploaded_file import UploadedFile
from cloudstore.db.repositories.base_repository import BaseRepository
from cloudstore.schemas.report import FileStatus, UploadedFileCreate


class UploadedFileRepository(BaseRepository[UploadedFile, UploadedFileCreate]):
    """
    文档上传记录仓库类
    """

    def __init__(self, db_session: AsyncSession):
        super().__init__(db_session, UploadedFile)

    async def get_by_path_and_owner(
        self, full_path: str, uploader_id: int
    ) -> Optional[UploadedFile]:
        """
        按对象键和上传者查找记录
        """
        query = select(UploadedFile).where(
            UploadedFile.full_path == full_path,
            UploadedFile.uploader_id == uploader_id,
        )
        result = await self.db.execute(query)
        return result.scalars().first()

    async def get_by_path(self, full_path: str) -> Optional[UploadedFile]:
        query = select(UploadedFile).where(UploadedFile.full_path == full_path)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def find_by_status_in_and_created_before(
        self,
        statuses: Iterable[FileStatus],
        created_before: datetime,
        *,
        limit: Optional[int] = None,
    ) -> List[UploadedFile]:
        """
        查找指定状态且创建时间早于给定时间的记录（保留清理用）
        """
        query = (
            select(UploadedFile)
            .where(
                UploadedFile.status.in_(list(statuses)),
                UploadedFile.created_at < created_before,
            )
            .order_by(UploadedFile.created_at)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def update_status(
        self,
        file: UploadedFile,
        status: FileStatus,
        notes: Optional[str],
        updated_at: datetime,
    ) -> UploadedFile:
        """
        更新文件状态
        """
        file.status = status
        file.notes = notes
        file.updated_at = updated_at
        self.db.add(file)
        await self.db.flush()
        return file
