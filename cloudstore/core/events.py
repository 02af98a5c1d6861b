from fastapi.concurrency import run_in_threadpool
from loguru import logger

from cloudstore.db.session import engine
from cloudstore.storage.factory import get_object_store


async def startup_event_handler() -> None:
    """
    应用启动事件处理函数

    存储桶初始化失败时中止启动
    """
    logger.info("启动应用...")

    store = get_object_store()
    await run_in_threadpool(store.bucket_ensure)
    logger.info(f"对象存储已就绪: {store.backend_name}")

    logger.info("应用启动完成")


async def shutdown_event_handler() -> None:
    """
    应用关闭事件处理函数
    """
    logger.info("关闭应用...")

    # 关闭数据库连接
    await engine.dispose()

    logger.info("应用已关闭")
