from datetime import timedelta
from typing import Any, Dict

from celery.schedules import crontab

from cloudstore.core.config import settings


def crontab_from_expression(expression: str) -> crontab:
    """
    把cron表达式转换为 Celery crontab

    支持标准5段表达式（分 时 日 月 周）；
    6段表达式（带秒，如 "0 0 3 * * ?"）会丢弃开头的秒字段，"?" 视为 "*"

    参数:
        expression: cron表达式

    返回:
        crontab 调度对象
    """
    fields = expression.split()
    if len(fields) == 6:
        fields = fields[1:]
    if len(fields) != 5:
        raise ValueError(f"无效的cron表达式: {expression}")

    minute, hour, day_of_month, month_of_year, day_of_week = (
        "*" if field == "?" else field for field in fields
    )
    return crontab(
        minute=minute,
        hour=hour,
        day_of_month=day_of_month,
        month_of_year=month_of_year,
        day_of_week=day_of_week,
    )


def build_beat_schedule() -> Dict[str, Dict[str, Any]]:
    """
    根据配置生成定时任务表
    """
    dispatch_interval = timedelta(seconds=settings.OUTBOX_DISPATCH_INTERVAL)
    return {
        # 发件箱调度，固定间隔
        "outbox-dispatch": {
            "task": "tasks.outbox.dispatch",
            "schedule": dispatch_interval,
            # 积压的调度消息过期丢弃，下一轮会重新扫描
            "options": {"queue": "scheduled", "expires": settings.OUTBOX_DISPATCH_INTERVAL * 5},
        },
        # 清理已发布的发件箱事件
        "outbox-cleanup": {
            "task": "tasks.outbox.cleanup",
            "schedule": crontab_from_expression(settings.OUTBOX_RETENTION_CRON),
            "options": {"queue": "scheduled"},
        },
        # 清理已完成/失败的文档
        "files-retention": {
            "task": "tasks.retention.cleanup_files",
            "schedule": crontab_from_expression(settings.FILES_RETENTION_CRON),
            "options": {"queue": "scheduled"},
        },
    }
