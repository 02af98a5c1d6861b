from typing import Any, Dict, Optional
from uuid import UUID

from celery import Celery
from loguru import logger

from cloudstore.tasks.celery import celery_app, file_uploaded_exchange

FILE_UPLOADED_ROUTING_KEY = "file.uploaded.{file_id}"


class EventPublisher:
    """
    消息总线发布器

    通过 Celery 的连接池发布JSON消息到 file-uploaded-topic 交换机，
    路由键和消息头 key 都携带 file_id，保证同一文件的事件可按键分区
    """

    def __init__(self, app: Optional[Celery] = None):
        self.app = app or celery_app

    def publish_file_uploaded(self, file_id: UUID, payload: Dict[str, Any]) -> None:
        """
        发布文件上传事件

        参数:
            file_id: 文件ID，作为消息键
            payload: 已序列化的 FileUploadedEvent（驼峰字段）
        """
        with self.app.producer_or_acquire() as producer:
            producer.publish(
                payload,
                exchange=file_uploaded_exchange,
                routing_key=FILE_UPLOADED_ROUTING_KEY.format(file_id=file_id),
                headers={"key": str(file_id)},
                serializer="json",
                declare=[file_uploaded_exchange],
                retry=True,
                retry_policy={"max_retries": 3, "interval_start": 0, "interval_step": 0.5},
            )
        logger.debug(f"已发布上传事件: {file_id}")
