"""
邮件通知渠道
"""

import asyncio
import logging
import smtplib
import ssl
from contextlib import contextmanager
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, make_msgid
from typing import Any, Dict, Iterator, List, Mapping, Optional

from shared.config import EmailConfig, NotificationSettings

from .base import NotificationChannel, eligible_email_recipients
from .templates import EMAIL_TEMPLATES, RenderedEmail
from .types import ChannelName, DeliveryDetail, DeliveryReport, Event, NotificationMeta, Recipient


logger = logging.getLogger(__name__)

# strict 模式下必须配置的项
REQUIRED_SETTINGS = (
    ("smtp_server", "SMTP服务器地址"),
    ("username", "SMTP用户名"),
    ("password", "SMTP密码"),
    ("sender", "发件人邮箱"),
)


class EmailChannel(NotificationChannel):
    """邮件渠道

    未配置 SMTP 认证信息或开启 log_only 时进入仅记录日志模式：
    邮件不会真正发出，明细标记 dev=True。
    """

    name = ChannelName.EMAIL

    def __init__(
        self,
        email_config: EmailConfig,
        settings: NotificationSettings,
        templates: Optional[Mapping] = None
    ):
        super().__init__(settings, EMAIL_TEMPLATES if templates is None else templates)
        self.email_config = email_config
        self._validate_config()

        if self.log_only:
            logger.warning("邮件渠道: SMTP 认证信息未配置或已开启仅日志模式，邮件只记录不发送")
        else:
            logger.info(f"邮件渠道已初始化 ({self.email_config.smtp_server}: {self.email_config.username})")

    def _validate_config(self):
        """验证邮件配置，仅在 strict 模式下缺失配置视为错误"""
        if not self.email_config.strict:
            return

        for field, label in REQUIRED_SETTINGS:
            if not getattr(self.email_config, field):
                raise ValueError(f"{label}不能为空")

    @property
    def log_only(self) -> bool:
        """是否处于仅记录日志模式"""
        return self.email_config.log_only or not self.email_config.configured

    async def send(
        self,
        event: Event,
        recipients: List[Recipient],
        data: Dict[str, Any],
        meta: Optional[NotificationMeta] = None
    ) -> DeliveryReport:
        """
        发送邮件通知

        Args:
            event: 事件定义
            recipients: 接收人列表
            data: 模板数据
            meta: 元数据

        Returns:
            DeliveryReport: 发送结果
        """
        template = self.get_template(event)
        if template is None:
            logger.warning(f"事件 {event.key.value} 没有邮件模板")
            return DeliveryReport.skip("no template")

        # 渲染一次，所有接收人共用
        rendered = template.render(data)

        eligible = eligible_email_recipients(recipients)
        if not eligible:
            logger.info(f"事件 {event.key.value} 没有可发送邮件的接收人")
            return DeliveryReport.skip("no eligible recipients")

        async def deliver(recipient: Recipient) -> DeliveryDetail:
            return await self._deliver(recipient, rendered)

        report = await self.deliver_all(eligible, deliver)
        logger.info(f"邮件发送完成: {event.key.value}, 成功 {report.sent}, 失败 {report.failed}")
        return report

    async def _deliver(self, recipient: Recipient, rendered: RenderedEmail) -> DeliveryDetail:
        if self.log_only:
            logger.info(f"[DEV] 邮件未发送，仅记录: {recipient.email} - {rendered.subject}")
            return DeliveryDetail(recipient_id=recipient.user_id, success=True, dev=True)

        message = self._create_message(recipient.email, rendered)
        await self._send_email(message, recipient.email)

        logger.info(f"邮件发送成功: {recipient.email} - {rendered.subject}")
        return DeliveryDetail(
            recipient_id=recipient.user_id,
            success=True,
            message_id=message["Message-ID"]
        )

    def _create_message(self, to_address: str, rendered: RenderedEmail) -> MIMEMultipart:
        """
        创建邮件消息

        Args:
            to_address: 收件人
            rendered: 渲染后的邮件

        Returns:
            MIMEMultipart: 邮件消息对象
        """
        message = MIMEMultipart("alternative")

        message["Subject"] = rendered.subject
        message["From"] = formataddr((self.email_config.from_name, self.email_config.sender))
        message["To"] = to_address
        message["Message-ID"] = make_msgid()

        message.attach(MIMEText(rendered.html, "html", "utf-8"))
        return message

    async def _send_email(self, message: MIMEMultipart, recipient: str):
        """SMTP是阻塞调用，放到线程池中执行"""
        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._send_email_sync, message, recipient)

    @contextmanager
    def _smtp_session(self) -> Iterator[smtplib.SMTP]:
        """建立已登录的SMTP连接，退出时关闭"""
        config = self.email_config
        if config.use_ssl:
            server = smtplib.SMTP_SSL(
                config.smtp_server, config.smtp_port,
                timeout=config.timeout, context=ssl.create_default_context()
            )
        else:
            server = smtplib.SMTP(config.smtp_server, config.smtp_port, timeout=config.timeout)

        try:
            if config.use_tls and not config.use_ssl:
                server.starttls(context=ssl.create_default_context())
            server.login(config.username, config.password)
            yield server
        finally:
            server.quit()

    def _send_email_sync(self, message: MIMEMultipart, recipient: str):
        with self._smtp_session() as server:
            server.send_message(message, to_addrs=[recipient])

    def _verify_sync(self):
        with self._smtp_session():
            pass

    async def verify(self) -> Dict[str, Any]:
        """
        登录一次SMTP服务器以检查配置

        Returns:
            Dict[str, Any]: {"connected": bool, "reason": 可选原因}
        """
        if self.log_only:
            return {"connected": False, "reason": "email transport not configured (log-only mode)"}

        try:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._verify_sync)
        except Exception as e:
            logger.error(f"SMTP连接检查失败 ({self.email_config.smtp_server}): {e}")
            return {"connected": False, "reason": str(e)}

        logger.info(f"SMTP连接检查通过 ({self.email_config.smtp_server})")
        return {"connected": True}

    def get_config_info(self) -> Dict[str, Any]:
        """渠道配置摘要，不含密码"""
        info = self.email_config.model_dump(
            include={"smtp_server", "smtp_port", "username", "from_name", "use_tls", "use_ssl"}
        )
        info.update(from_email=self.email_config.sender, log_only=self.log_only)
        return info
