"""
Pytest配置文件，提供全局fixture和配置
"""

import asyncio
from typing import AsyncGenerator, Dict

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from cloudstore.api.dependencies import (get_current_tenant, get_db_session,
                                         get_object_store)
from cloudstore.core.security import create_access_token
from cloudstore.db.models.base import Base
from cloudstore.db.models.outbox_event import OutboxEvent  # noqa: F401
from cloudstore.db.models.uploaded_file import UploadedFile  # noqa: F401
from cloudstore.main import app
from cloudstore.storage.memory import InMemoryObjectStore

TENANT_ID = 1
ROOT = "user-1-files/"


def pytest_configure(config):
    """配置pytest"""
    # 注册自定义标记
    config.addinivalue_line(
        "markers", "integration: mark a test as an integration test"
    )
    config.addinivalue_line("markers", "unit: mark a test as a unit test")


@pytest.fixture
def store() -> InMemoryObjectStore:
    """内存对象存储"""
    return InMemoryObjectStore()


# 仓库/服务测试使用的内存数据库会话
@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        yield session

    await engine.dispose()


@pytest.fixture
def db_url(tmp_path) -> str:
    """
    API测试使用的文件数据库

    TestClient 在自己的事件循环中处理请求，连接不能跨循环复用，所以使用 NullPool
    """
    url = f"sqlite+aiosqlite:///{tmp_path / 'cloudstore.db'}"

    async def create_tables():
        engine = create_async_engine(url, poolclass=NullPool)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(create_tables())
    return url


@pytest.fixture
def client(store: InMemoryObjectStore, db_url: str):
    """覆盖认证、数据库和对象存储依赖的测试客户端"""
    engine = create_async_engine(db_url, poolclass=NullPool)
    session_maker = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db_session():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db_session] = override_get_db_session
    app.dependency_overrides[get_current_tenant] = lambda: TENANT_ID
    app.dependency_overrides[get_object_store] = lambda: store

    # 不进入 with 块，跳过生命周期中的存储桶初始化
    yield TestClient(app)

    # 恢复原始依赖
    app.dependency_overrides = {}


@pytest.fixture
def auth_headers() -> Dict[str, str]:
    """租户1的认证头"""
    return {"Authorization": f"Bearer {create_access_token(TENANT_ID)}"}
