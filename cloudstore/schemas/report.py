from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from cloudstore.schemas.base import BaseSchema


class FileStatus(str, Enum):
    """
    文档处理状态枚举

    UPLOADED -> PROCESSING -> {COMPLETED, FAILED}
    """

    UPLOADED = "UPLOADED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def rank(self) -> int:
        return _STATUS_RANK[self]

    @property
    def is_terminal(self) -> bool:
        return self in (FileStatus.COMPLETED, FileStatus.FAILED)


_STATUS_RANK = {
    FileStatus.UPLOADED: 0,
    FileStatus.PROCESSING: 1,
    FileStatus.COMPLETED: 2,
    FileStatus.FAILED: 2,
}


class ContentType(str, Enum):
    """
    支持的文档类型
    """

    PDF = "PDF"
    DOCX = "DOCX"
    XLSX = "XLSX"

    @classmethod
    def from_extension(cls, extension: str) -> Optional["ContentType"]:
        return {
            "pdf": cls.PDF,
            "docx": cls.DOCX,
            "xlsx": cls.XLSX,
        }.get(extension.lower())


class CamelSchema(BaseSchema):
    """
    对外使用驼峰命名的模式类（消息总线载荷、状态查询响应）
    """

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class UploadedFileCreate(BaseSchema):
    """
    创建上传记录时的数据格式
    """

    file_id: UUID
    file_name: str
    full_path: str
    content_type: ContentType
    file_size: int
    uploader_id: int
    status: FileStatus = FileStatus.UPLOADED
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class FileUploadedEvent(CamelSchema):
    """
    文件上传完成事件，写入outbox并发布到 file-uploaded-topic
    """

    file_id: UUID
    file_name: str
    content_type: ContentType
    file_size: int
    uploader: int
    status: FileStatus
    created_at: datetime
    updated_at: datetime


class FileStatusUpdatedEvent(CamelSchema):
    """
    外部处理服务发来的状态更新事件
    """

    file_id: UUID
    status: FileStatus
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class ReportUploadResponse(BaseSchema):
    """
    文档上传响应
    """

    file_id: UUID = Field(..., description="文件ID")
    message: str = Field(..., description="提示信息")
    owner: int = Field(..., description="上传者（租户ID）")


class ActualStatusResponse(CamelSchema):
    """
    文档当前状态
    """

    file_id: UUID
    status: FileStatus
    file_name: str
    created_at: datetime
    updated_at: datetime
    notes: Optional[str] = None
