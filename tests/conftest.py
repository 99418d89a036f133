"""测试配置"""

import pytest
import pytest_asyncio

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from facility_platform.database.connection import DatabaseManager
from shared.config import EmailConfig, NotificationSettings, PushConfig


@pytest_asyncio.fixture
async def db_manager():
    """每个测试使用独立的内存数据库"""
    manager = DatabaseManager()
    manager.initialize(test_mode=True)

    # 创建所有表
    await manager.create_tables()

    yield manager

    await manager.drop_tables()
    await manager.close()


@pytest.fixture
def session_factory(db_manager):
    """返回异步会话上下文管理器工厂"""
    return db_manager.get_async_session


@pytest.fixture
def notification_settings():
    """较短超时的通知参数"""
    return NotificationSettings(
        enabled=True,
        channel_timeout=2.0,
        recipient_timeout=1.0,
        max_concurrency=3,
        concurrent_channels=False,
        dispatch_queue_size=10,
        dispatch_workers=1,
        dispatch_drain_timeout=2.0,
    )


@pytest.fixture
def log_only_email_config():
    """未配置SMTP认证信息的邮件配置"""
    return EmailConfig(username="", password="", from_email="qc@example.com", log_only=False, strict=False)


@pytest.fixture
def disabled_push_config():
    """未启用的推送配置"""
    return PushConfig(enabled=False, service_account=None, service_account_file=None)


@pytest.fixture(scope="session")
def rsa_key_pair():
    """生成测试用 RSA 密钥对，返回 (私钥PEM, 公钥PEM)"""
    from cryptography.hazmat.primitives import serialization
    from cryptography.hazmat.primitives.asymmetric import rsa

    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture
def service_account(rsa_key_pair):
    """服务账号JSON内容"""
    private_pem, _ = rsa_key_pair
    return {
        "type": "service_account",
        "project_id": "cleanguard-test",
        "private_key_id": "key-1",
        "private_key": private_pem,
        "client_email": "push@cleanguard-test.iam.gserviceaccount.com",
    }
