from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from cloudstore.api.api import api_router
from cloudstore.api.exceptions import setup_exception_handlers
from cloudstore.api.middlewares import RequestLoggingMiddleware
from cloudstore.core.config import settings
from cloudstore.core.events import shutdown_event_handler, startup_event_handler
from cloudstore.core.logging import setup_logging
from cloudstore.monitoring.metrics import setup_metrics

# 设置日志系统
setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用程序生命周期管理"""
    await startup_event_handler()
    yield
    await shutdown_event_handler()


# 创建FastAPI应用
app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    description=settings.DESCRIPTION,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    docs_url=f"{settings.API_PREFIX}/docs",
    redoc_url=f"{settings.API_PREFIX}/redoc",
    lifespan=lifespan,
)


# 添加CORS中间件
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)


# 添加中间件
app.add_middleware(RequestLoggingMiddleware)


# 配置异常处理
setup_exception_handlers(app)


# 设置监控
setup_metrics(app)


# 包含API路由
app.include_router(api_router, prefix=settings.API_PREFIX)


@app.get("/")
async def root():
    """根路径响应"""
    return {
        "message": f"欢迎使用 {settings.PROJECT_NAME} API",
        "docs": f"{settings.API_PREFIX}/docs",
        "version": settings.VERSION,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("cloudstore.main:app", host="0.0.0.0", port=8000, reload=True)
