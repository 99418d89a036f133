"""
推送服务账号凭证单元测试
"""

import json
import time
from unittest.mock import AsyncMock, patch

import pytest
from jose import jwt

from facility_platform.notifications.credentials import (
    ServiceAccountCredentials, ServiceAccountInfo, load_service_account, parse_service_account
)
from facility_platform.notifications.exceptions import ChannelConfigurationError, CredentialExchangeError
from shared.config import PushConfig


TOKEN_URI = "https://oauth2.example.com/token"
SCOPE = "https://www.googleapis.com/auth/firebase.messaging"


class FakeClock:
    def __init__(self, now: float):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestParseServiceAccount:
    """测试服务账号解析"""

    def test_parse_json_string(self, service_account):
        """测试解析JSON字符串"""
        info = parse_service_account(json.dumps(service_account))

        assert info.project_id == "cleanguard-test"
        assert info.client_email.startswith("push@")
        assert info.private_key_id == "key-1"

    def test_literal_newlines_normalised(self, service_account):
        """测试私钥中的字面量 \\n 被还原为换行"""
        escaped = dict(service_account, private_key=service_account["private_key"].replace("\n", "\\n"))

        info = parse_service_account(escaped)

        assert "\\n" not in info.private_key
        assert info.private_key == service_account["private_key"]

    def test_missing_fields(self, service_account):
        """测试缺少必要字段"""
        incomplete = dict(service_account)
        del incomplete["client_email"]
        incomplete["project_id"] = ""

        with pytest.raises(ChannelConfigurationError, match="project_id, client_email"):
            parse_service_account(incomplete)

    def test_invalid_json(self):
        """测试无效JSON"""
        with pytest.raises(ChannelConfigurationError):
            parse_service_account("{not json")

        with pytest.raises(ChannelConfigurationError):
            parse_service_account("[1, 2, 3]")


class TestLoadServiceAccount:
    """测试从配置加载服务账号"""

    def test_not_configured(self):
        """测试未配置时返回 None"""
        assert load_service_account(PushConfig(service_account=None, service_account_file=None)) is None

    def test_from_env_string(self, service_account):
        """测试从JSON字符串加载"""
        config = PushConfig(service_account=json.dumps(service_account))
        assert load_service_account(config).project_id == "cleanguard-test"

    def test_from_file(self, service_account, tmp_path):
        """测试从文件加载"""
        path = tmp_path / "service-account.json"
        path.write_text(json.dumps(service_account), encoding="utf-8")

        config = PushConfig(service_account=None, service_account_file=str(path))
        assert load_service_account(config).client_email == service_account["client_email"]

    def test_missing_file(self, tmp_path):
        """测试文件不存在"""
        config = PushConfig(service_account=None, service_account_file=str(tmp_path / "missing.json"))
        with pytest.raises(ChannelConfigurationError):
            load_service_account(config)


class TestServiceAccountCredentials:
    """测试访问令牌获取"""

    def _credentials(self, service_account, clock=time.time):
        return ServiceAccountCredentials(
            parse_service_account(service_account),
            scope=SCOPE,
            token_uri=TOKEN_URI,
            clock=clock
        )

    def test_assertion_claims(self, service_account, rsa_key_pair):
        """测试断言的签名和声明"""
        _, public_pem = rsa_key_pair
        credentials = self._credentials(service_account)

        assertion = credentials.build_assertion()

        header = jwt.get_unverified_header(assertion)
        assert header["alg"] == "RS256"
        assert header["kid"] == "key-1"

        claims = jwt.decode(assertion, public_pem, algorithms=["RS256"], audience=TOKEN_URI)
        assert claims["iss"] == service_account["client_email"]
        assert claims["scope"] == SCOPE
        assert claims["exp"] - claims["iat"] == 3600

    @pytest.mark.asyncio
    async def test_token_cached_until_expiry(self, service_account):
        """测试令牌在过期前复用"""
        clock = FakeClock(1_000_000.0)
        credentials = self._credentials(service_account, clock=clock)
        request = AsyncMock(side_effect=[
            {"access_token": "first", "expires_in": 3600},
            {"access_token": "second", "expires_in": 3600},
        ])

        with patch.object(credentials, "_request_token", request):
            assert await credentials.get_access_token() == "first"

            clock.now += 3000
            assert await credentials.get_access_token() == "first"
            assert request.await_count == 1

            # 进入提前刷新区间
            clock.now += 560
            assert await credentials.get_access_token() == "second"
            assert request.await_count == 2

    @pytest.mark.asyncio
    async def test_invalidate(self, service_account):
        """测试丢弃缓存的令牌"""
        credentials = self._credentials(service_account)
        request = AsyncMock(return_value={"access_token": "tok", "expires_in": 3600})

        with patch.object(credentials, "_request_token", request):
            await credentials.get_access_token()
            credentials.invalidate()
            await credentials.get_access_token()

        assert request.await_count == 2

    @pytest.mark.asyncio
    async def test_missing_access_token(self, service_account):
        """测试令牌响应缺少 access_token"""
        credentials = self._credentials(service_account)

        with patch.object(credentials, "_request_token", AsyncMock(return_value={"token_type": "Bearer"})):
            with pytest.raises(CredentialExchangeError):
                await credentials.get_access_token()

    @pytest.mark.asyncio
    async def test_signing_failure(self):
        """测试私钥无效时签名失败"""
        info = ServiceAccountInfo(
            project_id="p",
            client_email="c@example.com",
            private_key="not a private key",
        )
        credentials = ServiceAccountCredentials(info, scope=SCOPE, token_uri=TOKEN_URI)

        with pytest.raises(CredentialExchangeError, match="JWT"):
            await credentials.get_access_token()

    def test_from_config(self, service_account):
        """测试根据配置构建凭证"""
        config = PushConfig(enabled=True, service_account=json.dumps(service_account), token_uri=TOKEN_URI)

        credentials = ServiceAccountCredentials.from_config(config)

        assert credentials.project_id == "cleanguard-test"
        assert credentials.token_uri == TOKEN_URI
        assert ServiceAccountCredentials.from_config(PushConfig(service_account=None)) is None
