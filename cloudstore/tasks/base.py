import asyncio
import functools

from celery import Task
from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from cloudstore.core.config import settings
from cloudstore.tasks.celery import celery_app

# 每次任务执行都在新的事件循环中运行，连接不能跨循环复用
async_engine = create_async_engine(settings.SQLALCHEMY_DATABASE_URI, poolclass=NullPool)
AsyncSessionLocal = async_sessionmaker(
    async_engine, class_=AsyncSession, expire_on_commit=False
)


class BaseTask(Task):
    """基础任务类，提供公共功能"""

    abstract = True  # 抽象类，不会被注册为任务

    def on_failure(self, exc, task_id, args, kwargs, einfo):
        """任务失败处理"""
        logger.error(
            f"任务失败: {self.name}[{task_id}], 异常: {exc}, 参数: {args}, {kwargs}"
        )
        super().on_failure(exc, task_id, args, kwargs, einfo)

    def on_success(self, retval, task_id, args, kwargs):
        """任务成功处理"""
        logger.debug(f"任务成功: {self.name}[{task_id}], 结果: {retval}")
        super().on_success(retval, task_id, args, kwargs)

    def on_retry(self, exc, task_id, args, kwargs, einfo):
        """任务重试处理"""
        logger.warning(
            f"任务重试: {self.name}[{task_id}], 异常: {exc}, 参数: {args}, {kwargs}"
        )
        super().on_retry(exc, task_id, args, kwargs, einfo)


def async_task(
    *celery_args,
    name=None,
    queue=None,
    retry_backoff=True,
    max_retries=3,
    autoretry_for=(Exception,),
    **celery_kwargs,
):
    """
    异步任务装饰器，支持异步函数

    被装饰的协程在独立的事件循环中执行；autoretry_for 中的异常交给 Celery 重试，
    max_retries=0 表示失败后不重试（例如由下一轮定时调度补偿）
    """

    def decorator(async_func):
        # 创建同步包装函数
        @functools.wraps(async_func)
        def sync_wrapper(*args, **kwargs):
            return asyncio.run(async_func(*args, **kwargs))

        # 设置Celery任务参数
        task_options = {
            "base": BaseTask,
            "bind": True,
            "autoretry_for": autoretry_for,
            "retry_backoff": retry_backoff,
            "retry_kwargs": {"max_retries": max_retries},
        }

        # 添加队列和名称，如果指定
        if queue:
            task_options["queue"] = queue
        if name:
            task_options["name"] = name

        # 合并自定义参数
        task_options.update(celery_kwargs)

        # 创建并注册Celery任务
        return celery_app.task(*celery_args, **task_options)(sync_wrapper)

    return decorator


async def get_async_db_session():
    """获取异步数据库会话，异常时回滚"""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
