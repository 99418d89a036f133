"""
通知服务 - 统一的通知分发入口

notify() 根据事件定义把通知依次交给各个渠道，单个渠道的异常或超时
只影响该渠道的结果，不会中断其他渠道，也不会向调用方抛出。
"""

import asyncio
import inspect
import logging
from typing import Any, Dict, List, Mapping, Optional, Union

from shared.config import NotificationSettings

from .events import EventRegistry, default_registry
from .types import (
    ChannelName, ChannelOutcome, Event, EventKey, NotificationPayload,
    NotifyResult, NotifyStatus
)


logger = logging.getLogger(__name__)


class NotificationService:
    """通知服务"""

    def __init__(
        self,
        registry: Optional[EventRegistry] = None,
        config: Optional[NotificationSettings] = None,
        channels: Optional[Mapping[Union[ChannelName, str], Any]] = None
    ):
        self.registry = registry if registry is not None else default_registry
        self.config = config or NotificationSettings()
        self.enabled = self.config.enabled
        self.channels: Dict[ChannelName, Any] = {}
        self._stats: Dict[str, int] = {status.value: 0 for status in NotifyStatus}

        for name, channel in (channels or {}).items():
            self.register_channel(name, channel)

    def register_channel(self, name: Union[ChannelName, str], channel: Any) -> None:
        """
        注册通知渠道

        Args:
            name: 渠道名
            channel: 实现了异步 send() 的渠道实例

        Raises:
            TypeError: 渠道没有异步 send 方法
        """
        channel_name = ChannelName(name)
        if not inspect.iscoroutinefunction(getattr(channel, "send", None)):
            raise TypeError(f"渠道 {channel_name.value} 必须实现异步 send() 方法")

        self.channels[channel_name] = channel
        logger.info(f"注册通知渠道: {channel_name.value}")

    def remove_channel(self, name: Union[ChannelName, str]) -> None:
        """注销通知渠道"""
        channel_name = ChannelName(name)
        if self.channels.pop(channel_name, None) is not None:
            logger.info(f"注销通知渠道: {channel_name.value}")

    def registered_channels(self) -> List[str]:
        """已注册的渠道名"""
        return [name.value for name in self.channels]

    def has_channel(self, name: Union[ChannelName, str]) -> bool:
        try:
            return ChannelName(name) in self.channels
        except ValueError:
            return False

    async def notify(
        self,
        event_key: Union[EventKey, str],
        payload: Union[NotificationPayload, Mapping[str, Any], None] = None
    ) -> NotifyResult:
        """
        发送一条业务通知

        Args:
            event_key: 事件标识
            payload: 接收人、事件数据和元数据

        Returns:
            NotifyResult: 跳过、错误或按渠道的结果
        """
        if not self.enabled:
            return self._record(NotifyResult.skipped("notifications disabled"))

        event = self.registry.lookup(event_key)
        if event is None:
            logger.warning(f"未知的通知事件: {event_key}")
            return self._record(NotifyResult.failure("unknown event"))

        try:
            payload = NotificationPayload.coerce(payload)
        except (AttributeError, TypeError, ValueError) as e:
            logger.error(f"通知载荷无效: {event.key.value}, 错误: {e}")
            return self._record(NotifyResult.failure(f"invalid payload: {e}"))

        if not payload.recipients:
            logger.debug(f"通知 {event.key.value} 没有接收人，跳过")
            return self._record(NotifyResult.skipped("no recipients"))

        logger.info(
            f"分发通知 {event.key.value}: 渠道 "
            f"[{', '.join(c.value for c in event.channels)}], 接收人 {len(payload.recipients)}"
        )

        if self.config.concurrent_channels:
            outcomes = await asyncio.gather(
                *(self._send_to_channel(name, event, payload) for name in event.channels)
            )
        else:
            outcomes = [await self._send_to_channel(name, event, payload) for name in event.channels]

        result = NotifyResult(
            status=NotifyStatus.DISPATCHED,
            channels=dict(zip(event.channels, outcomes))
        )
        return self._record(result)

    async def _send_to_channel(
        self,
        name: ChannelName,
        event: Event,
        payload: NotificationPayload
    ) -> ChannelOutcome:
        channel = self.channels.get(name)
        if channel is None:
            logger.info(f"[{name.value}] 渠道未注册，跳过")
            return ChannelOutcome.skipped("channel not registered")

        try:
            report = await asyncio.wait_for(
                channel.send(event, payload.recipients, payload.data, payload.meta),
                timeout=self.config.channel_timeout
            )
            outcome = ChannelOutcome.from_report(report)
        except asyncio.TimeoutError:
            logger.error(f"[{name.value}] 发送超时 ({self.config.channel_timeout}s): {event.key.value}")
            return ChannelOutcome.failure(f"channel timed out after {self.config.channel_timeout}s")
        except Exception as e:
            logger.error(f"[{name.value}] 发送失败: {event.key.value}, 错误: {e}")
            return ChannelOutcome.failure(str(e) or e.__class__.__name__)

        if report.skipped:
            logger.info(f"[{name.value}] 跳过 {event.key.value}: {report.reason}")
        return outcome

    async def verify_channels(self) -> Dict[str, Dict[str, Any]]:
        """检查所有已注册渠道的连通性"""
        results = {}
        for name, channel in self.channels.items():
            verify = getattr(channel, "verify", None)
            if verify is None:
                results[name.value] = {"connected": True}
                continue
            try:
                results[name.value] = await verify()
            except Exception as e:
                logger.error(f"[{name.value}] 渠道检查失败: {e}")
                results[name.value] = {"connected": False, "reason": str(e)}
        return results

    def _record(self, result: NotifyResult) -> NotifyResult:
        self._stats[result.status.value] += 1
        return result

    def get_statistics(self) -> Dict[str, Any]:
        """
        获取统计信息

        Returns:
            Dict[str, Any]: 统计数据
        """
        return {
            "enabled": self.enabled,
            "registered_channels": self.registered_channels(),
            "events": len(self.registry),
            "notify_calls": dict(self._stats),
            "total": sum(self._stats.values()),
        }
