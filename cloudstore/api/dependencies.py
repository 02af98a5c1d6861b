from typing import AsyncGenerator, Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from cloudstore.core.config import settings
from cloudstore.core.exceptions import CredentialsException
from cloudstore.core.security import decode_tenant_id
from cloudstore.db.session import get_db
from cloudstore.services.report_service import ReportService
from cloudstore.services.resource_service import ResourceService
from cloudstore.storage.base import ObjectStore
from cloudstore.storage.factory import get_object_store as create_object_store

# Bearer 令牌（可选，缺失时再检查会话Cookie）
bearer_scheme = HTTPBearer(auto_error=False)


# 依赖项: 获取数据库会话
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    async with get_db() as session:
        yield session


# 依赖项: 获取当前租户ID（必须）
async def get_current_tenant(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> int:
    token = credentials.credentials if credentials else request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        raise CredentialsException("未登录或会话已过期")
    return decode_tenant_id(token)


# 依赖项: 对象存储
def get_object_store() -> ObjectStore:
    return create_object_store()


# 服务依赖项
def get_resource_service(
    store: ObjectStore = Depends(get_object_store),
) -> ResourceService:
    return ResourceService(store)


async def get_report_service(
    db_session: AsyncSession = Depends(get_db_session),
    store: ObjectStore = Depends(get_object_store),
) -> ReportService:
    return ReportService(db_session, store)
