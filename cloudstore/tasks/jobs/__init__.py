"""
Celery异步任务模块

- outbox: 发件箱调度与清理
- status: 消费文档状态更新事件
- retention: 清理过期文档
"""
