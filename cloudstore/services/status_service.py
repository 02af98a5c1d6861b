from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from cloudstore.core.exceptions import NotFoundException
from cloudstore.db.models.uploaded_file import UploadedFile
from cloudstore.db.repositories.uploaded_file_repository import \
    UploadedFileRepository
from cloudstore.schemas.report import FileStatus, FileStatusUpdatedEvent
from cloudstore.utils.datetime import as_utc, now_utc


class StatusService:
    """
    应用外部处理服务发来的状态更新事件
    """

    def __init__(self, db_session: AsyncSession):
        self.db = db_session
        self.file_repo = UploadedFileRepository(db_session)

    async def apply_status_update(self, event: FileStatusUpdatedEvent) -> UploadedFile:
        """
        应用状态更新

        - 记录不存在时记录日志并抛出异常，由消息重投处理
        - 状态只前进不后退，终态不会被其他状态覆盖
        - 传入备注为空时保留原备注
        - 被忽略的事件不修改备注和更新时间
        - updated_at 只前进，且不早于 created_at

        重复应用同一事件结果不变
        """
        file = await self.file_repo.get_by_id(event.file_id)
        if file is None:
            logger.warning(f"状态更新的文件不存在: file_id={event.file_id}, status={event.status.value}")
            raise NotFoundException(f"文件不存在: {event.file_id}")

        current = FileStatus(file.status)
        if event.status != current and (current.is_terminal or event.status.rank < current.rank):
            # 过期或终态之后的事件整体忽略，备注和时间都不变
            logger.info(
                f"忽略过期的状态更新: file_id={event.file_id}, 当前={current.value}, 收到={event.status.value}"
            )
            return file

        notes = event.notes if event.notes and event.notes.strip() else file.notes

        # updated_at 只前进，且不早于 created_at
        updated_at = max(
            as_utc(event.updated_at) or now_utc(),
            as_utc(file.updated_at) or as_utc(file.created_at),
            as_utc(file.created_at),
        )

        file = await self.file_repo.update_status(file, event.status, notes, updated_at)
        await self.db.commit()
        logger.info(f"文件状态已更新: file_id={event.file_id}, status={event.status.value}")
        return file
