from fastapi import APIRouter

from cloudstore.api.v1.endpoints import directories, health, reports, resources

api_router = APIRouter()

# 注册各个路由
api_router.include_router(health.router, prefix="/health", tags=["health"])
api_router.include_router(resources.router, prefix="/resource", tags=["resources"])
api_router.include_router(directories.router, prefix="/directory", tags=["directories"])
api_router.include_router(reports.router, tags=["reports"])
