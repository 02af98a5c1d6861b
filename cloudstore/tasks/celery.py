from celery import Celery
from kombu import Exchange, Queue

from cloudstore.core.config import settings
from cloudstore.tasks.scheduler import build_beat_schedule

# 定义交换机
default_exchange = Exchange("default", type="direct")
# 发布上传事件，下游处理服务按 file.uploaded.# 绑定
file_uploaded_exchange = Exchange("file-uploaded-topic", type="topic")
# 下游处理服务回传状态更新
file_status_exchange = Exchange("file-status-updated-topic", type="topic")

FILE_STATUS_QUEUE = "file-status-updated-topic"

# 定义队列
task_queues = (
    Queue("default", default_exchange, routing_key="default"),  # 默认队列
    Queue("scheduled", default_exchange, routing_key="scheduled"),  # 定时任务队列
    Queue(FILE_STATUS_QUEUE, file_status_exchange, routing_key="file.status.#"),  # 状态更新队列
)

# 创建Celery应用
celery_app = Celery(
    "worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=[
        "cloudstore.tasks.jobs.outbox",
        "cloudstore.tasks.jobs.status",
        "cloudstore.tasks.jobs.retention",
    ],
)

# 配置
celery_app.conf.update(
    # 队列配置
    task_queues=task_queues,
    task_default_queue="default",
    task_default_exchange="default",
    task_default_routing_key="default",
    # 任务路由
    task_routes={
        "tasks.outbox.*": {"queue": "scheduled"},
        "tasks.retention.*": {"queue": "scheduled"},
        "tasks.status.*": {"queue": FILE_STATUS_QUEUE},
    },
    # 任务执行设置
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    task_time_limit=600,  # 10分钟
    task_soft_time_limit=540,
    worker_max_tasks_per_child=200,
    # 结果存储
    result_expires=60 * 60 * 24,  # 一天
    # 任务跟踪和监控
    task_track_started=True,
    task_send_sent_event=True,
    worker_send_task_events=True,
    # 错误处理和重试
    task_acks_late=True,
    task_reject_on_worker_lost=True,
)

# 将定时任务添加到Celery配置
celery_app.conf.beat_schedule = build_beat_schedule()
