"""配置加载测试"""

import pytest
from pydantic import ValidationError

from shared.config import (
    AppConfig, DatabaseConfig, EmailConfig, NotificationSettings, PushConfig, SchedulerConfig
)


class TestEmailConfig:
    """测试邮件配置"""

    def test_from_environment(self, monkeypatch):
        """测试从环境变量读取"""
        monkeypatch.setenv("EMAIL_SMTP_SERVER", "smtp.example.com")
        monkeypatch.setenv("EMAIL_USERNAME", "qc@example.com")
        monkeypatch.setenv("EMAIL_PASSWORD", "secret")
        monkeypatch.setenv("EMAIL_LOG_ONLY", "true")

        config = EmailConfig()

        assert config.smtp_server == "smtp.example.com"
        assert config.configured is True
        assert config.log_only is True
        assert config.sender == "qc@example.com"

    def test_not_configured(self):
        """测试缺少认证信息"""
        config = EmailConfig(username="", password="")
        assert config.configured is False
        assert config.from_name == "CleanGuard QC"


class TestPushConfig:
    """测试推送配置"""

    def test_defaults(self):
        config = PushConfig(enabled=False)
        assert config.token_uri == "https://oauth2.googleapis.com/token"
        assert config.scope.endswith("firebase.messaging")

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("PUSH_ENABLED", "1")
        monkeypatch.setenv("PUSH_SERVICE_ACCOUNT", '{"project_id": "p"}')

        config = PushConfig()

        assert config.enabled is True
        assert config.service_account == '{"project_id": "p"}'


class TestSchedulerConfig:
    """测试调度器配置"""

    def test_defaults(self, monkeypatch):
        """测试默认每天 08:00 洛杉矶时间"""
        for name in ("SCHEDULER_HOUR", "SCHEDULER_MINUTE", "SCHEDULER_TIMEZONE"):
            monkeypatch.delenv(name, raising=False)

        config = SchedulerConfig()

        assert config.timezone == "America/Los_Angeles"
        assert config.cron_expression == "0 8 * * *"

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("SCHEDULER_HOUR", "6")
        monkeypatch.setenv("SCHEDULER_MINUTE", "15")
        monkeypatch.setenv("SCHEDULER_TIMEZONE", "America/Chicago")

        config = SchedulerConfig()

        assert config.cron_expression == "15 6 * * *"
        assert config.timezone == "America/Chicago"

    def test_invalid_hour(self):
        with pytest.raises(ValidationError):
            SchedulerConfig(hour=24)


class TestNotificationSettings:
    """测试通知运行参数"""

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATIONS_ENABLED", "false")
        monkeypatch.setenv("NOTIFICATIONS_CHANNEL_TIMEOUT", "5")
        monkeypatch.setenv("NOTIFICATIONS_CONCURRENT_CHANNELS", "true")

        settings = NotificationSettings()

        assert settings.enabled is False
        assert settings.channel_timeout == 5.0
        assert settings.concurrent_channels is True


class TestAppConfig:
    """测试应用配置"""

    def test_nested_configs(self):
        config = AppConfig()
        assert isinstance(config.database, DatabaseConfig)
        assert isinstance(config.push, PushConfig)
        assert config.database.async_url.startswith("postgresql+asyncpg://")
