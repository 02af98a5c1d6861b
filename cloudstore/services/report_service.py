import uuid
from dataclasses import dataclass
from typing import Iterator
from uuid import UUID

from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool
from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cloudstore.core.config import settings
from cloudstore.core.exceptions import (AlreadyExistsException,
                                        BadFormatException, CloudStoreException,
                                        FileTooLargeException,
                                        InvalidArgumentException,
                                        NotFoundException, StorageIOException)
from cloudstore.db.repositories.outbox_repository import OutboxRepository
from cloudstore.db.repositories.uploaded_file_repository import \
    UploadedFileRepository
from cloudstore.schemas.report import (ActualStatusResponse, ContentType,
                                       FileStatus, FileUploadedEvent,
                                       ReportUploadResponse,
                                       UploadedFileCreate)
from cloudstore.monitoring.metrics import REPORT_UPLOADS
from cloudstore.services.resource_service import ResourceService
from cloudstore.storage.base import ObjectNotFoundError, ObjectStore, iter_chunks
from cloudstore.utils import paths
from cloudstore.utils.datetime import now_utc


@dataclass
class ArtefactStream:
    """
    已上传文档的下载流
    """

    file_name: str
    body: Iterator[bytes]


class ReportService:
    """
    文档上传流水线入口

    上传对象、写入记录和发件箱事件在同一个数据库事务中完成；
    事务失败时尽力删除已写入但无记录认领的对象
    """

    def __init__(self, db_session: AsyncSession, store: ObjectStore):
        self.db = db_session
        self.store = store
        self.resource_service = ResourceService(store)
        self.file_repo = UploadedFileRepository(db_session)
        self.outbox_repo = OutboxRepository(db_session)

    @staticmethod
    def _file_size(file: UploadFile) -> int:
        if file.size is not None:
            return file.size
        file.file.seek(0, 2)  # 移动到文件末尾
        size = file.file.tell()
        file.file.seek(0)
        return size

    async def upload_report(self, tenant_id: int, file: UploadFile) -> ReportUploadResponse:
        """
        上传待处理文档

        参数:
            tenant_id: 租户ID
            file: 上传的文件（pdf/docx/xlsx，不超过 UPLOAD_MAX_BYTES）

        返回:
            文件ID、提示信息和上传者
        """
        size = self._file_size(file)
        if size > settings.UPLOAD_MAX_BYTES:
            raise FileTooLargeException(
                f"文件过大，最大允许{settings.UPLOAD_MAX_BYTES / (1024 * 1024):g}MB"
            )

        file_name = paths.basename((file.filename or "").replace("\\", "/")).strip()
        if not file_name:
            raise InvalidArgumentException("上传文件缺少文件名")

        # 扩展名取第一个 "." 之后的部分
        extension = file_name.split(".", 1)[1] if "." in file_name else ""
        content_type = ContentType.from_extension(extension)
        if content_type is None:
            raise BadFormatException(f"不支持的文件格式: {extension or file_name}")

        root = await run_in_threadpool(self.resource_service.ensure_root, tenant_id)
        key = root + file_name
        paths.validate_file(key)
        paths.ensure_owned(tenant_id, key)

        existing = await self.file_repo.get_by_path_and_owner(key, tenant_id)
        if existing is not None:
            raise AlreadyExistsException(f"文件已存在: {file_name}, file_id={existing.file_id}")
        if await run_in_threadpool(self.store.exists, key):
            raise AlreadyExistsException(f"文件已存在: {file_name}")

        file_id = uuid.uuid4()
        now = now_utc()
        written = False
        try:
            await run_in_threadpool(self.store.put, key, file.file, size, file.content_type)
            written = True

            await self.file_repo.create(
                obj_in=UploadedFileCreate(
                    file_id=file_id,
                    file_name=file_name,
                    full_path=key,
                    content_type=content_type,
                    file_size=size,
                    uploader_id=tenant_id,
                    status=FileStatus.UPLOADED,
                    created_at=now,
                    updated_at=now,
                )
            )
            event = FileUploadedEvent(
                file_id=file_id,
                file_name=file_name,
                content_type=content_type,
                file_size=size,
                uploader=tenant_id,
                status=FileStatus.UPLOADED,
                created_at=now,
                updated_at=now,
            )
            await self.outbox_repo.add_event(
                file_id, event.model_dump(mode="json", by_alias=True), now
            )
            await self.db.commit()
        except (CloudStoreException, SQLAlchemyError) as e:
            await self._abort_upload(key, written)
            if isinstance(e, IntegrityError):
                raise AlreadyExistsException(f"文件已存在: {file_name}") from e
            if isinstance(e, SQLAlchemyError):
                logger.error(f"保存上传记录失败: {key}, 错误: {str(e)}")
                raise StorageIOException("保存上传记录失败") from e
            raise
        except BaseException:
            # 取消或其他异常同样清理已写入的对象
            await self._abort_upload(key, written)
            raise

        REPORT_UPLOADS.labels(result="created").inc()
        logger.info(f"文档上传成功: file_id={file_id}, key={key}, 大小: {size}")
        return ReportUploadResponse(
            file_id=file_id,
            message="文件上传成功，等待处理",
            owner=tenant_id,
        )

    async def _abort_upload(self, key: str, written: bool) -> None:
        await self.db.rollback()
        REPORT_UPLOADS.labels(result="failed").inc()
        if written:
            await self._remove_orphan(key)

    async def _remove_orphan(self, key: str) -> None:
        """删除无记录认领的对象，失败只记录日志"""
        try:
            if await self.file_repo.get_by_path(key) is not None:
                return
            await run_in_threadpool(self.store.remove, key)
            logger.info(f"已删除孤立对象: {key}")
        except (CloudStoreException, SQLAlchemyError) as e:
            logger.error(f"删除孤立对象失败: {key}, 错误: {str(e)}")

    async def _get_owned(self, tenant_id: int, file_id: UUID):
        record = await self.file_repo.get_by_id(file_id)
        if record is None or record.uploader_id != tenant_id:
            raise NotFoundException(f"文件不存在: {file_id}")
        return record

    async def get_actual_status(self, tenant_id: int, file_id: UUID) -> ActualStatusResponse:
        """
        查询文档当前处理状态（仅限上传者本人）
        """
        await run_in_threadpool(self.resource_service.ensure_root, tenant_id)
        record = await self._get_owned(tenant_id, file_id)
        return ActualStatusResponse.model_validate(record)

    async def open_artefact(self, tenant_id: int, file_id: UUID) -> ArtefactStream:
        """
        打开已上传文档的下载流，文件名取自上传记录
        """
        record = await self._get_owned(tenant_id, file_id)
        key = paths.ensure_owned(tenant_id, record.full_path)
        try:
            reader = await run_in_threadpool(self.store.get, key)
        except ObjectNotFoundError as e:
            raise NotFoundException(f"文件不存在: {file_id}") from e
        return ArtefactStream(
            file_name=record.file_name,
            body=iter_chunks(reader, settings.STORAGE_CHUNK_SIZE),
        )
