"""FastAPI主应用程序"""

import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request

from shared.config import AppConfig, app_config
from shared.logger import configure_logging
from facility_platform.database.connection import DatabaseManager
from facility_platform.notifications.bootstrap import create_reminder_scheduler, initialize_notifications
from facility_platform.notifications.dispatcher import NotificationDispatcher
from facility_platform.notifications.types import ChannelName

from .exceptions import setup_exception_handlers
from .middleware import RequestLoggingMiddleware


logger = logging.getLogger(__name__)


def create_app(
    config: Optional[AppConfig] = None,
    db_manager: Optional[DatabaseManager] = None,
    test_mode: bool = False
) -> FastAPI:
    """
    创建FastAPI应用

    Args:
        config: 应用配置，默认使用全局配置
        db_manager: 数据库管理器，默认按配置新建
        test_mode: 使用内存数据库
    """
    config = config or app_config
    db_manager = db_manager or DatabaseManager(config.database)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        configure_logging(config.logging)
        logger.info(f"启动 {config.name} v{config.version}")

        # 初始化数据库
        if not db_manager.initialized:
            db_manager.initialize(test_mode=test_mode, echo=config.debug)
        if test_mode:
            await db_manager.create_tables()
        if not await db_manager.health_check():
            logger.error("数据库健康检查失败，通知服务仍会启动")

        service = initialize_notifications(db_manager, config)
        dispatcher = NotificationDispatcher(service)
        await dispatcher.start()

        scheduler = create_reminder_scheduler(service, db_manager, config)
        if config.scheduler.enabled:
            await scheduler.start()
        else:
            logger.info("提醒调度器已禁用")

        app.state.db_manager = db_manager
        app.state.notification_service = service
        app.state.dispatcher = dispatcher
        app.state.scheduler = scheduler

        yield

        # 关闭时执行
        await scheduler.stop()
        await dispatcher.stop()
        push = service.channels.get(ChannelName.PUSH)
        if push is not None and hasattr(push, "close"):
            await push.close()
        await db_manager.close()
        logger.info("应用关闭")

    app = FastAPI(
        title=config.name,
        version=config.version,
        description="CleanGuard QC 通知与提醒服务",
        docs_url="/docs" if config.debug else None,
        redoc_url="/redoc" if config.debug else None,
        openapi_url="/openapi.json" if config.debug else None,
        lifespan=lifespan
    )

    setup_middleware(app)
    setup_exception_handlers(app)
    register_routes(app, config)

    return app


def setup_middleware(app: FastAPI):
    """设置中间件"""
    app.add_middleware(RequestLoggingMiddleware)


def register_routes(app: FastAPI, config: AppConfig):
    """注册路由"""

    @app.get("/health", tags=["系统"])
    async def health_check(request: Request):
        """健康检查端点"""
        database_ok = await request.app.state.db_manager.health_check()
        return {
            "status": "healthy" if database_ok else "unhealthy",
            "timestamp": time.time(),
            "version": config.version,
            "checks": {"database": database_ok},
        }

    @app.get("/health/notifications", tags=["系统"])
    async def notification_health(request: Request):
        """通知渠道连通性及统计信息"""
        service = request.app.state.notification_service
        return {
            "channels": await service.verify_channels(),
            "service": service.get_statistics(),
            "dispatcher": request.app.state.dispatcher.get_statistics(),
            "scheduler": request.app.state.scheduler.get_status(),
        }
