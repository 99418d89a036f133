"""通知系统异常定义"""

from typing import Optional


class NotificationError(Exception):
    """通知系统基础异常"""


class ChannelConfigurationError(NotificationError):
    """渠道配置缺失或无效"""


class CredentialExchangeError(NotificationError):
    """服务账号换取访问令牌失败"""


class PushDeliveryError(NotificationError):
    """推送服务返回的投递错误"""

    def __init__(self, message: str, error_code: Optional[str] = None, status: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.status = status

    def __str__(self) -> str:
        if self.error_code:
            return f"{self.error_code}: {self.message}"
        return self.message
