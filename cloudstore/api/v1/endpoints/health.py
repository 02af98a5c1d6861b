from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from cloudstore.api.dependencies import get_db_session, get_object_store
from cloudstore.core.config import settings
from cloudstore.storage.base import ObjectStore

router = APIRouter()


class HealthResponse(BaseModel):
    """健康检查响应模型"""

    status: str
    version: str
    environment: str
    database: bool
    storage: str


@router.get("", response_model=HealthResponse)
async def health_check(
    db_session: AsyncSession = Depends(get_db_session),
    store: ObjectStore = Depends(get_object_store),
):
    """
    健康检查端点

    返回API版本、数据库连通性和对象存储后端
    """
    database = True
    try:
        await db_session.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning(f"数据库健康检查失败: {str(e)}")
        database = False

    return {
        "status": "ok" if database else "degraded",
        "version": settings.VERSION,
        "environment": settings.ENVIRONMENT,
        "database": database,
        "storage": store.backend_name,
    }
