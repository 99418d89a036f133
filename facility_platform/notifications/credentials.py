"""
推送服务账号凭证

用服务账号私钥签发 RS256 JWT 断言，向令牌端点换取短期访问令牌，
令牌在过期前缓存复用。
"""

import asyncio
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import aiohttp
from jose import jwt

from shared.config import PushConfig

from .exceptions import ChannelConfigurationError, CredentialExchangeError


logger = logging.getLogger(__name__)

JWT_BEARER_GRANT = "urn:ietf:params:oauth:grant-type:jwt-bearer"
ASSERTION_LIFETIME = 3600
# 提前刷新，避免令牌在请求途中过期
EXPIRY_MARGIN = 60

REQUIRED_FIELDS = ("project_id", "client_email", "private_key")


@dataclass(frozen=True)
class ServiceAccountInfo:
    """服务账号信息"""
    project_id: str
    client_email: str
    private_key: str
    private_key_id: Optional[str] = None
    token_uri: Optional[str] = None


def parse_service_account(raw: Any) -> ServiceAccountInfo:
    """
    解析服务账号JSON

    Args:
        raw: JSON字符串或已解析的字典

    Returns:
        ServiceAccountInfo: 服务账号信息

    Raises:
        ChannelConfigurationError: JSON无效或缺少必要字段
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError as e:
            raise ChannelConfigurationError(f"服务账号JSON解析失败: {e}") from e

    if not isinstance(raw, dict):
        raise ChannelConfigurationError("服务账号必须是JSON对象")

    missing = [name for name in REQUIRED_FIELDS if not raw.get(name)]
    if missing:
        raise ChannelConfigurationError(f"服务账号缺少字段: {', '.join(missing)}")

    return ServiceAccountInfo(
        project_id=raw["project_id"],
        client_email=raw["client_email"],
        # 环境变量中的私钥通常带有字面量 \n
        private_key=raw["private_key"].replace("\\n", "\n"),
        private_key_id=raw.get("private_key_id"),
        token_uri=raw.get("token_uri"),
    )


def load_service_account(config: PushConfig) -> Optional[ServiceAccountInfo]:
    """从配置加载服务账号，未配置返回 None"""
    if config.service_account:
        return parse_service_account(config.service_account)

    if config.service_account_file:
        try:
            with open(config.service_account_file, "r", encoding="utf-8") as f:
                return parse_service_account(f.read())
        except OSError as e:
            raise ChannelConfigurationError(f"无法读取服务账号文件: {e}") from e

    return None


class ServiceAccountCredentials:
    """服务账号访问令牌提供者"""

    def __init__(
        self,
        info: ServiceAccountInfo,
        scope: str,
        token_uri: str,
        request_timeout: float = 10,
        clock: Callable[[], float] = time.time
    ):
        self.info = info
        self.scope = scope
        self.token_uri = info.token_uri or token_uri
        self.request_timeout = request_timeout
        self._clock = clock
        self._access_token: Optional[str] = None
        self._expires_at = 0.0
        self._lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_config(cls, config: PushConfig) -> Optional["ServiceAccountCredentials"]:
        """根据推送配置构建凭证，未配置服务账号时返回 None"""
        info = load_service_account(config)
        if info is None:
            return None
        return cls(info, scope=config.scope, token_uri=config.token_uri,
                   request_timeout=config.request_timeout)

    @property
    def project_id(self) -> str:
        return self.info.project_id

    def build_assertion(self) -> str:
        """签发换取令牌用的 JWT 断言"""
        now = int(self._clock())
        claims = {
            "iss": self.info.client_email,
            "scope": self.scope,
            "aud": self.token_uri,
            "iat": now,
            "exp": now + ASSERTION_LIFETIME,
        }
        headers = {"kid": self.info.private_key_id} if self.info.private_key_id else None
        return jwt.encode(claims, self.info.private_key, algorithm="RS256", headers=headers)

    async def get_access_token(self) -> str:
        """
        获取访问令牌，缓存未过期时直接复用

        Raises:
            CredentialExchangeError: 签名或令牌交换失败
        """
        if self._lock is None:
            self._lock = asyncio.Lock()

        async with self._lock:
            if self._access_token and self._clock() < self._expires_at - EXPIRY_MARGIN:
                return self._access_token

            try:
                assertion = self.build_assertion()
            except Exception as e:
                raise CredentialExchangeError(f"JWT 签名失败: {e}") from e

            token_data = await self._request_token(assertion)

            access_token = token_data.get("access_token")
            if not access_token:
                raise CredentialExchangeError("令牌响应中缺少 access_token")

            self._access_token = access_token
            self._expires_at = self._clock() + float(token_data.get("expires_in", ASSERTION_LIFETIME))
            logger.debug(f"已获取推送访问令牌，有效期 {token_data.get('expires_in')} 秒")
            return access_token

    async def _request_token(self, assertion: str) -> Dict[str, Any]:
        """向令牌端点提交断言"""
        timeout = aiohttp.ClientTimeout(total=self.request_timeout)
        form = {"grant_type": JWT_BEARER_GRANT, "assertion": assertion}
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.token_uri, data=form) as response:
                    body = await response.json(content_type=None)
                    if response.status != 200:
                        detail = body.get("error_description") or body.get("error") if isinstance(body, dict) else body
                        raise CredentialExchangeError(f"令牌端点返回 {response.status}: {detail}")
                    return body
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
            raise CredentialExchangeError(f"令牌交换请求失败: {e}") from e

    def invalidate(self) -> None:
        """丢弃缓存的访问令牌"""
        self._access_token = None
        self._expires_at = 0.0
