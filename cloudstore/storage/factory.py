from functools import lru_cache

from loguru import logger

from cloudstore.core.config import settings
from cloudstore.storage.base import ObjectStore
from cloudstore.storage.memory import InMemoryObjectStore
from cloudstore.storage.s3 import S3ObjectStore


@lru_cache(maxsize=None)
def get_object_store(backend: str = None) -> ObjectStore:
    """
    按配置创建对象存储（进程内单例）

    参数:
        backend: 后端名称，默认取 STORAGE_BACKEND，支持 's3'、'memory'
    """
    backend = (backend or settings.STORAGE_BACKEND).lower()
    if backend == "memory":
        logger.warning("使用内存对象存储，数据不会持久化")
        return InMemoryObjectStore()
    if backend == "s3":
        return S3ObjectStore.from_settings()
    raise ValueError(f"不支持的对象存储后端: {backend}")
