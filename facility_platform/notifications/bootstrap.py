"""
通知系统装配

根据应用配置创建通知服务、注册邮件和推送渠道，并构建提醒调度器。
"""

import logging
from typing import Any, Optional

from facility_platform.database.connection import DatabaseManager
from facility_platform.database.repositories import UserRepository
from shared.config import AppConfig, app_config
from shared.models.base import to_uuid

from .email import EmailChannel
from .events import default_registry
from .manager import NotificationService
from .push import PushChannel
from .recipients import RecipientResolver
from .scheduler import ReminderScheduler
from .templates import check_template_coverage
from .types import ChannelName


logger = logging.getLogger(__name__)


class DatabaseTokenStore:
    """基于用户表的设备令牌存储"""

    def __init__(self, db_manager: DatabaseManager):
        self.db_manager = db_manager

    async def clear_push_token(self, user_id: Any) -> None:
        uid = to_uuid(user_id)
        if uid is None:
            return

        async with self.db_manager.get_async_session() as session:
            cleared = await UserRepository(session).clear_fcm_token(uid)

        if not cleared:
            logger.debug(f"用户 {user_id} 不存在，无需清除设备令牌")


def initialize_notifications(
    db_manager: DatabaseManager,
    config: Optional[AppConfig] = None
) -> NotificationService:
    """
    创建通知服务并注册所有渠道

    Args:
        db_manager: 已初始化的数据库管理器
        config: 应用配置，默认使用全局配置

    Returns:
        NotificationService: 可直接调用 notify() 的通知服务
    """
    config = config or app_config

    service = NotificationService(registry=default_registry, config=config.notifications)
    service.register_channel(
        ChannelName.EMAIL,
        EmailChannel(config.email, config.notifications)
    )
    service.register_channel(
        ChannelName.PUSH,
        PushChannel(config.push, DatabaseTokenStore(db_manager), config.notifications)
    )

    for event_key, channel in check_template_coverage(service.registry):
        logger.warning(f"事件 {event_key.value} 声明了 {channel.value} 渠道但没有对应模板")

    logger.info(
        f"通知服务已初始化 (事件: {len(service.registry)}, "
        f"渠道: {', '.join(service.registered_channels())})"
    )
    return service


def create_reminder_scheduler(
    service: NotificationService,
    db_manager: DatabaseManager,
    config: Optional[AppConfig] = None
) -> ReminderScheduler:
    """根据调度器配置构建提醒调度器"""
    config = config or app_config
    return ReminderScheduler(
        service=service,
        resolver=RecipientResolver(db_manager.get_async_session),
        session_factory=db_manager.get_async_session,
        timezone_name=config.scheduler.timezone,
        hour=config.scheduler.hour,
        minute=config.scheduler.minute,
    )
