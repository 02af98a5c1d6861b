from sqlalchemy import (JSON, TIMESTAMP, BigInteger, Boolean, Column, Index,
                        Integer, Uuid)
from sqlalchemy.dialects.postgresql import JSONB

from cloudstore.db.models.base import Base


class OutboxEvent(Base):
    """
    事务性发件箱：与上传记录在同一事务中写入，由调度任务发布到消息总线
    """

    __tablename__ = "outbox_kafka"
    __table_args__ = (
        Index("ix_outbox_kafka_processed_created_at", "processed", "created_at"),
    )

    # SQLite 只对 INTEGER 主键自增
    id = Column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True, autoincrement=True)
    file_id = Column(Uuid, nullable=False)
    payload = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), nullable=False)
    processed = Column(Boolean, nullable=False, default=False)
