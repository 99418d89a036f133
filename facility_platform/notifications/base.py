"""
通知渠道基础类和接口定义
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Mapping, Optional

from shared.config import NotificationSettings

from .types import ChannelName, DeliveryDetail, DeliveryReport, Event, NotificationMeta, Recipient


logger = logging.getLogger(__name__)


def eligible_email_recipients(recipients: Iterable[Recipient]) -> List[Recipient]:
    """有邮箱且未显式退订邮件的接收人"""
    return [r for r in recipients if r.email and r.wants_email]


def eligible_push_recipients(recipients: Iterable[Recipient]) -> List[Recipient]:
    """有设备令牌且未显式退订推送的接收人"""
    return [r for r in recipients if r.push_token and r.wants_push]


class NotificationChannel(ABC):
    """通知渠道基类

    子类实现 send()，返回 DeliveryReport；单个接收人的失败只记录在
    明细中，不会中断同一批次的其他接收人。
    """

    name: ChannelName

    def __init__(self, settings: NotificationSettings, templates: Optional[Mapping] = None):
        self.settings = settings
        self.templates = templates
        self._semaphore: Optional[asyncio.Semaphore] = None

    @abstractmethod
    async def send(
        self,
        event: Event,
        recipients: List[Recipient],
        data: Dict[str, Any],
        meta: Optional[NotificationMeta] = None
    ) -> DeliveryReport:
        """
        发送通知

        Args:
            event: 事件定义
            recipients: 接收人列表
            data: 事件数据，由模板解释
            meta: 元数据

        Returns:
            DeliveryReport: 发送汇总或跳过标记
        """
        pass

    async def verify(self) -> Dict[str, Any]:
        """检查渠道连通性"""
        return {"connected": True}

    def get_template(self, event: Event):
        """查找事件对应的模板，没有则返回 None"""
        if self.templates is None:
            return None
        return self.templates.get(event.key)

    def _get_semaphore(self) -> asyncio.Semaphore:
        # 信号量需要在事件循环中创建
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(max(1, self.settings.max_concurrency))
        return self._semaphore

    async def deliver_all(
        self,
        recipients: List[Recipient],
        deliver: Callable[[Recipient], Awaitable[DeliveryDetail]]
    ) -> DeliveryReport:
        """
        对每个接收人执行一次投递，并发数和单次耗时都有上限

        Args:
            recipients: 合格接收人
            deliver: 单个接收人的投递协程

        Returns:
            DeliveryReport: 按接收人顺序汇总的结果
        """
        semaphore = self._get_semaphore()

        async def bounded(recipient: Recipient) -> DeliveryDetail:
            async with semaphore:
                try:
                    return await asyncio.wait_for(
                        deliver(recipient),
                        timeout=self.settings.recipient_timeout
                    )
                except asyncio.TimeoutError:
                    logger.error(f"[{self.name.value}] 投递超时: {recipient.user_id}")
                    return DeliveryDetail(
                        recipient_id=recipient.user_id,
                        success=False,
                        error=f"timed out after {self.settings.recipient_timeout}s"
                    )
                except Exception as e:
                    logger.error(f"[{self.name.value}] 投递失败: {recipient.user_id}, 错误: {e}")
                    return DeliveryDetail(recipient_id=recipient.user_id, success=False, error=str(e))

        details = await asyncio.gather(*(bounded(recipient) for recipient in recipients))
        return DeliveryReport.from_details(details)
