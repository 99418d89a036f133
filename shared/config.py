"""配置管理模块"""

from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings


class DatabaseConfig(BaseSettings):
    """数据库配置"""

    host: str = "localhost"
    port: int = 5432
    name: str = "cleanguard"
    user: str = "postgres"
    password: str = ""
    pool_size: int = 10
    max_overflow: int = 20
    pool_recycle: int = 3600  # 秒

    model_config = {"env_prefix": "DB_", "env_file": ".env", "extra": "ignore"}

    @property
    def async_url(self) -> str:
        """获取异步数据库连接URL"""
        return f"postgresql+asyncpg://{self.user}:{self.password}@{self.host}:{self.port}/{self.name}"


class EmailConfig(BaseSettings):
    """邮件渠道配置

    未配置用户名/密码时邮件渠道降级为仅记录日志模式；
    log_only 强制开启该模式，strict 则要求配置完整否则初始化失败。
    """

    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True
    use_ssl: bool = False
    from_email: str = ""
    from_name: str = "CleanGuard QC"
    timeout: int = 30
    log_only: bool = False
    strict: bool = False

    model_config = {"env_prefix": "EMAIL_", "env_file": ".env", "extra": "ignore"}

    @property
    def sender(self) -> str:
        """发件人地址，未单独配置时使用登录用户名"""
        return self.from_email or self.username

    @property
    def configured(self) -> bool:
        """SMTP认证信息是否完整"""
        return bool(self.smtp_server and self.username and self.password)


class PushConfig(BaseSettings):
    """推送渠道配置 (FCM HTTP v1)"""

    enabled: bool = False
    service_account: Optional[str] = None  # 服务账号JSON字符串
    service_account_file: Optional[str] = None
    token_uri: str = "https://oauth2.googleapis.com/token"
    api_base_url: str = "https://fcm.googleapis.com/v1"
    scope: str = "https://www.googleapis.com/auth/firebase.messaging"
    request_timeout: int = 10

    model_config = {"env_prefix": "PUSH_", "env_file": ".env", "extra": "ignore"}


class NotificationSettings(BaseSettings):
    """通知服务运行参数"""

    enabled: bool = True
    channel_timeout: float = 60.0  # 单个渠道一次发送的总超时（秒）
    recipient_timeout: float = 15.0  # 单个接收者的发送超时（秒）
    max_concurrency: int = 5  # 单个渠道内并发发送的接收者数量
    concurrent_channels: bool = False
    dispatch_queue_size: int = 1000
    dispatch_workers: int = 2
    dispatch_drain_timeout: float = 10.0

    model_config = {"env_prefix": "NOTIFICATIONS_", "env_file": ".env", "extra": "ignore"}


class SchedulerConfig(BaseSettings):
    """提醒调度器配置"""

    enabled: bool = True
    timezone: str = "America/Los_Angeles"
    hour: int = Field(default=8, ge=0, le=23)
    minute: int = Field(default=0, ge=0, le=59)

    model_config = {"env_prefix": "SCHEDULER_", "env_file": ".env", "extra": "ignore"}

    @property
    def cron_expression(self) -> str:
        """每日触发的cron表达式"""
        return f"{self.minute} {self.hour} * * *"


class LoggingConfig(BaseSettings):
    """日志配置"""

    level: str = "INFO"
    file: Optional[str] = None
    max_bytes: int = 10 * 1024 * 1024
    backup_count: int = 5
    console: bool = True

    model_config = {"env_prefix": "LOG_", "env_file": ".env", "extra": "ignore"}


class AppConfig(BaseSettings):
    """应用配置"""

    name: str = Field(default="CleanGuard QC", validation_alias="APP_NAME")
    version: str = Field(default="0.1.0", validation_alias="APP_VERSION")
    debug: bool = Field(default=False, validation_alias="DEBUG")
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT")

    # 数据库配置
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    # 通知渠道配置
    email: EmailConfig = Field(default_factory=EmailConfig)
    push: PushConfig = Field(default_factory=PushConfig)
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)

    # 调度器配置
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)

    # 日志配置
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"env_file": ".env", "extra": "ignore"}


# 全局配置实例
app_config = AppConfig()
