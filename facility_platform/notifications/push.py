"""
移动推送通知渠道 (FCM HTTP v1)
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol

import aiohttp

from shared.config import NotificationSettings, PushConfig

from .base import NotificationChannel, eligible_push_recipients
from .credentials import ServiceAccountCredentials
from .exceptions import ChannelConfigurationError, CredentialExchangeError, PushDeliveryError
from .templates import PUSH_TEMPLATES, RenderedPush
from .types import ChannelName, DeliveryDetail, DeliveryReport, Event, NotificationMeta, Recipient


logger = logging.getLogger(__name__)

# 表示设备令牌已永久失效的错误
INVALID_TOKEN_CODES = frozenset({"UNREGISTERED"})
INVALID_TOKEN_MESSAGES = (
    "not a valid FCM registration token",
    "Requested entity was not found",
)


def is_invalid_token_error(error_code: Optional[str], message: Optional[str]) -> bool:
    """判断推送错误是否说明设备令牌已失效"""
    if error_code and error_code in INVALID_TOKEN_CODES:
        return True
    message = message or ""
    return any(fragment in message for fragment in INVALID_TOKEN_MESSAGES)


def build_message(token: str, rendered: RenderedPush, event: Event) -> Dict[str, Any]:
    """
    构建单个设备的推送消息

    高优先级事件在 Android 上使用 urgent 通道和 alarm 提示音，
    在 iOS 上使用 alarm.wav。
    """
    high = event.is_high_priority
    return {
        "message": {
            "token": token,
            "notification": {"title": rendered.title, "body": rendered.body},
            "data": dict(rendered.data),
            "android": {
                "priority": "high" if high else "normal",
                "notification": {
                    "channel_id": "urgent" if high else "default",
                    "sound": "alarm" if high else "default",
                },
            },
            "apns": {
                "payload": {
                    "aps": {
                        "sound": "alarm.wav" if high else "default",
                        "badge": 1,
                    },
                },
            },
        }
    }


class TokenStore(Protocol):
    """设备令牌存储"""

    async def clear_push_token(self, user_id: str) -> None:
        """清除用户的设备令牌，重复调用无副作用"""
        ...


class FcmTransport:
    """FCM HTTP v1 发送客户端"""

    def __init__(self, api_base_url: str, request_timeout: float = 10):
        self.api_base_url = api_base_url.rstrip("/")
        self.request_timeout = request_timeout
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.request_timeout)
            )
        return self._session

    async def send(self, access_token: str, project_id: str, message: Dict[str, Any]) -> str:
        """
        发送一条推送消息

        Returns:
            str: 服务端返回的消息名

        Raises:
            PushDeliveryError: 服务端拒绝了该消息
        """
        url = f"{self.api_base_url}/projects/{project_id}/messages:send"
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {access_token}",
        }

        async with self._get_session().post(url, json=message, headers=headers) as response:
            body = await response.json(content_type=None)
            if response.status == 200:
                return (body or {}).get("name", "")

            error = (body or {}).get("error", {}) if isinstance(body, dict) else {}
            error_code = None
            for detail in error.get("details") or []:
                if detail.get("errorCode"):
                    error_code = detail["errorCode"]
                    break
            raise PushDeliveryError(
                error.get("message") or f"HTTP {response.status}",
                error_code=error_code,
                status=response.status
            )

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()


class PushChannel(NotificationChannel):
    """推送渠道

    未启用或没有有效服务账号时，每次发送都返回跳过。
    """

    name = ChannelName.PUSH

    def __init__(
        self,
        push_config: PushConfig,
        token_store: TokenStore,
        settings: NotificationSettings,
        credentials: Optional[ServiceAccountCredentials] = None,
        transport: Optional[FcmTransport] = None,
        templates: Optional[Mapping] = None
    ):
        super().__init__(settings, PUSH_TEMPLATES if templates is None else templates)
        self.push_config = push_config
        self.token_store = token_store
        self.credentials = credentials
        self.transport = transport or FcmTransport(push_config.api_base_url, push_config.request_timeout)

        if not push_config.enabled:
            logger.info("推送渠道: 未启用")
        elif self.credentials is None:
            try:
                self.credentials = ServiceAccountCredentials.from_config(push_config)
            except ChannelConfigurationError as e:
                logger.error(f"推送渠道: 服务账号无效，推送已禁用: {e}")

            if self.credentials is None:
                logger.warning("推送渠道: 未配置服务账号，推送已禁用")
            else:
                logger.info(
                    f"推送渠道已初始化 (项目: {self.credentials.project_id} | "
                    f"账号: {self.credentials.info.client_email})"
                )

    @property
    def enabled(self) -> bool:
        return bool(self.push_config.enabled and self.credentials is not None)

    def _disabled_reason(self) -> str:
        if not self.push_config.enabled:
            return "push not enabled"
        return "no service account credential"

    async def send(
        self,
        event: Event,
        recipients: List[Recipient],
        data: Dict[str, Any],
        meta: Optional[NotificationMeta] = None
    ) -> DeliveryReport:
        """
        发送推送通知

        Args:
            event: 事件定义
            recipients: 接收人列表
            data: 模板数据
            meta: 元数据

        Returns:
            DeliveryReport: 发送结果
        """
        if not self.enabled:
            reason = self._disabled_reason()
            logger.info(f"[push] 跳过 {event.key.value}: {reason}")
            return DeliveryReport.skip(reason)

        template = self.get_template(event)
        if template is None:
            logger.info(f"[push] 跳过 {event.key.value}: 没有推送模板")
            return DeliveryReport.skip("no template")

        rendered = template.render(data)

        eligible = eligible_push_recipients(recipients)
        logger.debug(
            f"[push] 事件 {event.key.value}: 接收人 {len(recipients)}, 可推送 {len(eligible)}"
        )
        if not eligible:
            return DeliveryReport.skip("no eligible recipients")

        # 拿不到访问令牌时整批失败
        try:
            access_token = await self.credentials.get_access_token()
        except CredentialExchangeError as e:
            logger.error(f"[push] 获取访问令牌失败: {e}")
            return DeliveryReport(
                sent=0,
                failed=len(eligible),
                details=[DeliveryDetail(recipient_id=None, success=False, error="credential exchange failed")]
            )

        async def deliver(recipient: Recipient) -> DeliveryDetail:
            return await self._deliver(recipient, rendered, event, access_token)

        report = await self.deliver_all(eligible, deliver)
        logger.info(f"推送发送完成: {event.key.value}, 成功 {report.sent}, 失败 {report.failed}")
        return report

    async def _deliver(
        self,
        recipient: Recipient,
        rendered: RenderedPush,
        event: Event,
        access_token: str
    ) -> DeliveryDetail:
        message = build_message(recipient.push_token, rendered, event)
        try:
            message_id = await self.transport.send(access_token, self.credentials.project_id, message)
        except PushDeliveryError as e:
            logger.error(f"推送失败: 用户 {recipient.user_id}, 错误: {e}")
            if is_invalid_token_error(e.error_code, e.message):
                await self._invalidate_token(recipient)
            return DeliveryDetail(recipient_id=recipient.user_id, success=False, error=e.message)

        logger.info(f"推送成功: 用户 {recipient.user_id} - {rendered.title}")
        return DeliveryDetail(recipient_id=recipient.user_id, success=True, message_id=message_id)

    async def _invalidate_token(self, recipient: Recipient) -> None:
        """清除失效令牌，只尝试一次"""
        if not recipient.user_id:
            return
        try:
            await self.token_store.clear_push_token(recipient.user_id)
            logger.info(f"已清除用户 {recipient.user_id} 的失效设备令牌")
        except Exception as e:
            logger.error(f"清除用户 {recipient.user_id} 的设备令牌失败: {e}")

    async def verify(self) -> Dict[str, Any]:
        """尝试换取访问令牌以检查推送配置"""
        if not self.enabled:
            return {"connected": False, "reason": self._disabled_reason()}

        try:
            token = await self.credentials.get_access_token()
            return {"connected": bool(token)}
        except CredentialExchangeError as e:
            return {"connected": False, "reason": str(e)}

    async def close(self) -> None:
        await self.transport.close()
