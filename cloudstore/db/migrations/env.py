import asyncio

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from cloudstore.core.config import settings
from cloudstore.db.models.base import Base
from cloudstore.db.models.outbox_event import OutboxEvent  # noqa: F401
from cloudstore.db.models.uploaded_file import UploadedFile  # noqa: F401

target_metadata = Base.metadata


def run_migrations_offline() -> None:
    """
    离线模式：只生成SQL，不连接数据库
    """
    context.configure(
        url=settings.SQLALCHEMY_DATABASE_URI,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, target_metadata=target_metadata)

    with context.begin_transaction():
        context.run_migrations()


async def run_migrations_online() -> None:
    """
    在线模式：通过异步引擎执行迁移
    """
    connectable = create_async_engine(settings.SQLALCHEMY_DATABASE_URI, poolclass=pool.NullPool)

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    asyncio.run(run_migrations_online())
