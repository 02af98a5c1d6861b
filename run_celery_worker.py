#!/usr/bin/env python3
"""
Celery Worker启动脚本

启动处理发件箱调度、状态更新和保留清理的worker，
加 --beat 参数时在同一进程内运行定时调度（仅用于本地开发）
"""

import sys

from cloudstore.core.logging import setup_logging
from cloudstore.tasks.celery import FILE_STATUS_QUEUE, celery_app

KEY_TASKS = [
    "tasks.outbox.dispatch",
    "tasks.outbox.cleanup",
    "tasks.status.file_status_updated",
    "tasks.retention.cleanup_files",
]


if __name__ == "__main__":
    setup_logging()
    # 加载 include 中声明的任务模块
    celery_app.loader.import_default_modules()

    print("=== Celery Worker启动 ===")
    print("\n关键任务检查:")
    for task_name in KEY_TASKS:
        mark = "✓" if task_name in celery_app.tasks else "✗"
        print(f"  {mark} {task_name}")

    print(f"\nBroker: {celery_app.conf.broker_url}")
    print(f"Backend: {celery_app.conf.result_backend}")
    print("\n定时任务:")
    for entry_name, entry in celery_app.conf.beat_schedule.items():
        print(f"  - {entry_name}: {entry['task']} ({entry['schedule']})")

    argv = [
        "worker",
        "--loglevel=info",
        f"--queues=default,scheduled,{FILE_STATUS_QUEUE}",
        "--concurrency=1",
        "--pool=solo",
        "--without-mingle",
        "--without-gossip",
    ]
    if "--beat" in sys.argv:
        argv.append("--beat")

    print("\n启动Worker...")
    try:
        celery_app.worker_main(argv)
    except KeyboardInterrupt:
        print("\nWorker已停止")
