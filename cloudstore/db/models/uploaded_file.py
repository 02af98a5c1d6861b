import uuid

from sqlalchemy import (TIMESTAMP, BigInteger, Column, Enum, String, Text,
                        UniqueConstraint, Uuid)

from cloudstore.db.models.base import Base
from cloudstore.schemas.report import ContentType, FileStatus


class UploadedFile(Base):
    """
    文档上传记录，由状态消费者更新，由保留清理任务删除
    """

    __tablename__ = "uploaded_files"
    __table_args__ = (
        UniqueConstraint("full_path", "uploader_id", name="uq_uploaded_files_path_uploader"),
    )

    file_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    file_name = Column(String(255), nullable=False)
    full_path = Column(String(1024), nullable=False)  # 对象存储中的完整键
    content_type = Column(
        Enum(ContentType, name="content_type", native_enum=False, length=16),
        nullable=False,
    )
    file_size = Column(BigInteger, nullable=False)
    uploader_id = Column(BigInteger, nullable=False, index=True)
    status = Column(
        Enum(FileStatus, name="file_status", native_enum=False, length=16),
        nullable=False,
        default=FileStatus.UPLOADED,
        index=True,
    )
    notes = Column(Text, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    updated_at = Column(TIMESTAMP(timezone=True), nullable=False)
