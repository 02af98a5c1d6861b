import logging
import os
import sys

from loguru import logger

from cloudstore.core.config import settings

LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{line} | {message}"

# 交给 loguru 接管的标准库日志
INTERCEPTED_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "celery", "alembic")
# 只保留警告以上
NOISY_LOGGERS = ("botocore", "boto3", "s3transfer", "urllib3", "kombu", "amqp")


class InterceptHandler(logging.Handler):
    """
    拦截标准库日志并重定向到Loguru
    """

    def emit(self, record):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # 跳过 logging 模块自身的栈帧，定位真实调用者
        frame, depth = logging.currentframe(), 2
        while frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _setup_sentry() -> None:
    import sentry_sdk
    from sentry_sdk.integrations.logging import LoggingIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENVIRONMENT,
        release=f"cloudstore@{settings.VERSION}",
        traces_sample_rate=0.1,
        integrations=[LoggingIntegration(level=logging.INFO, event_level=logging.ERROR)],
    )


def setup_logging():
    """
    配置日志：控制台 + 按大小滚动的文件，可选 Sentry
    """
    logger.remove()
    logger.add(sys.stdout, format=LOG_FORMAT, level=settings.LOG_LEVEL, colorize=True)
    logger.add(
        os.path.join(settings.LOG_DIR, "cloudstore.log"),
        rotation="10 MB",
        retention="1 month",
        format=LOG_FORMAT,
        level="DEBUG",
        enqueue=True,
    )

    if settings.SENTRY_DSN:
        _setup_sentry()

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in INTERCEPTED_LOGGERS:
        logging.getLogger(name).handlers = [InterceptHandler()]
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.info(f"日志系统已初始化, 级别: {settings.LOG_LEVEL}")
