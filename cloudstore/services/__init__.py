"""
业务逻辑服务模块

包含以下服务：
- resource_service: 租户文件/文件夹操作服务
- archive_service: 文件夹ZIP流式打包服务
- report_service: 文档上传流水线入口（上传、状态查询、下载）
- outbox_service: 发件箱调度与清理服务
- status_service: 文档状态更新服务
- retention_service: 过期文档清理服务
"""
