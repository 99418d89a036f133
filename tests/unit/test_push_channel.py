"""
推送通知渠道单元测试
"""

from typing import List
from unittest.mock import AsyncMock, MagicMock

import pytest

from facility_platform.notifications.events import lookup
from facility_platform.notifications.exceptions import CredentialExchangeError, PushDeliveryError
from facility_platform.notifications.push import PushChannel, build_message, is_invalid_token_error
from facility_platform.notifications.templates import RenderedPush
from facility_platform.notifications.types import EventKey
from shared.config import PushConfig

from tests.helpers import make_recipient


TICKET_DATA = {"ticket": {"id": "t-42", "title": "Spill in hallway", "location_name": "Floor 2"}}


class FakeTokenStore:
    """记录被清除令牌的用户"""

    def __init__(self, error: Exception = None):
        self.cleared: List[str] = []
        self.error = error

    async def clear_push_token(self, user_id):
        self.cleared.append(user_id)
        if self.error is not None:
            raise self.error


def _credentials(token="access-token"):
    credentials = MagicMock()
    credentials.project_id = "cleanguard-test"
    credentials.get_access_token = AsyncMock(return_value=token)
    return credentials


def _transport(side_effect=None):
    transport = MagicMock()
    transport.send = AsyncMock(side_effect=side_effect, return_value="projects/cleanguard-test/messages/1")
    transport.close = AsyncMock()
    return transport


def _channel(notification_settings, token_store=None, credentials=None, transport=None, **kwargs):
    return PushChannel(
        PushConfig(enabled=True, service_account=None, service_account_file=None),
        token_store or FakeTokenStore(),
        notification_settings,
        credentials=credentials if credentials is not None else _credentials(),
        transport=transport or _transport(),
        **kwargs
    )


class TestPushHelpers:
    """测试推送辅助函数"""

    @pytest.mark.parametrize("code,message,expected", [
        ("UNREGISTERED", "Requested entity was not found.", True),
        (None, "The registration token is not a valid FCM registration token", True),
        ("NOT_FOUND", "Requested entity was not found.", True),
        ("INVALID_ARGUMENT", "Invalid JSON payload", False),
        ("QUOTA_EXCEEDED", None, False),
        (None, None, False),
    ])
    def test_is_invalid_token_error(self, code, message, expected):
        """测试失效令牌错误识别"""
        assert is_invalid_token_error(code, message) is expected

    def test_build_message_high_priority(self):
        """测试高优先级消息"""
        rendered = RenderedPush(title="URGENT Ticket!", body="Urgent: Flood", data={"type": "TICKET_URGENT", "ticketId": "t-1"})

        message = build_message("device-token", rendered, lookup(EventKey.TICKET_URGENT))["message"]

        assert message["token"] == "device-token"
        assert message["notification"] == {"title": "URGENT Ticket!", "body": "Urgent: Flood"}
        assert message["data"] == {"type": "TICKET_URGENT", "ticketId": "t-1"}
        assert message["android"]["priority"] == "high"
        assert message["android"]["notification"] == {"channel_id": "urgent", "sound": "alarm"}
        assert message["apns"]["payload"]["aps"] == {"sound": "alarm.wav", "badge": 1}

    def test_build_message_normal_priority(self):
        """测试普通优先级消息"""
        rendered = RenderedPush(title="t", body="b", data={"type": "TICKET_CREATED"})

        message = build_message("tok", rendered, lookup(EventKey.TICKET_CREATED))["message"]

        assert message["android"]["priority"] == "normal"
        assert message["android"]["notification"] == {"channel_id": "default", "sound": "default"}
        assert message["apns"]["payload"]["aps"]["sound"] == "default"


class TestPushChannelSkips:
    """测试推送渠道跳过的情况"""

    @pytest.mark.asyncio
    async def test_disabled(self, disabled_push_config, notification_settings):
        """测试推送未启用"""
        transport = _transport()
        channel = PushChannel(disabled_push_config, FakeTokenStore(), notification_settings, transport=transport)

        report = await channel.send(lookup(EventKey.TICKET_CREATED), [make_recipient(push_token="tok")], TICKET_DATA)

        assert channel.enabled is False
        assert report.skipped is True
        assert report.reason == "push not enabled"
        transport.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_enabled_without_service_account(self, notification_settings):
        """测试启用但没有服务账号"""
        channel = PushChannel(
            PushConfig(enabled=True, service_account=None, service_account_file=None),
            FakeTokenStore(),
            notification_settings,
            transport=_transport()
        )

        report = await channel.send(lookup(EventKey.TICKET_CREATED), [make_recipient(push_token="tok")], TICKET_DATA)

        assert report.skipped is True
        assert report.reason == "no service account credential"

    @pytest.mark.asyncio
    async def test_invalid_service_account_disables_push(self, notification_settings):
        """测试服务账号无效时推送被禁用而不是抛出"""
        channel = PushChannel(
            PushConfig(enabled=True, service_account="{broken"),
            FakeTokenStore(),
            notification_settings,
            transport=_transport()
        )
        assert channel.enabled is False

    @pytest.mark.asyncio
    async def test_no_template(self, notification_settings):
        """测试没有推送模板"""
        transport = _transport()
        channel = _channel(notification_settings, transport=transport, templates={})

        report = await channel.send(lookup(EventKey.TICKET_CREATED), [make_recipient(push_token="tok")], TICKET_DATA)

        assert report.reason == "no template"
        transport.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_opted_out_and_tokenless_excluded(self, notification_settings):
        """测试退订推送或没有令牌的接收人被排除"""
        credentials = _credentials()
        channel = _channel(notification_settings, credentials=credentials)

        report = await channel.send(
            lookup(EventKey.TICKET_CREATED),
            [
                make_recipient("a@example.com", push_token="tok-a", push_opt_in=False),
                make_recipient("b@example.com", push_token=None),
            ],
            TICKET_DATA
        )

        assert report.skipped is True
        assert report.reason == "no eligible recipients"
        credentials.get_access_token.assert_not_called()


class TestPushChannelSend:
    """测试推送发送"""

    @pytest.mark.asyncio
    async def test_send_to_eligible_recipients(self, notification_settings):
        """测试只推送给合格接收人"""
        transport = _transport()
        channel = _channel(notification_settings, transport=transport)
        recipients = [
            make_recipient("a@example.com", push_token="tok-a"),
            make_recipient("b@example.com", push_token="tok-b", push_opt_in=False),
            make_recipient("c@example.com", push_token="tok-c", push_opt_in=True),
        ]

        report = await channel.send(lookup(EventKey.TICKET_ASSIGNED), recipients, TICKET_DATA)

        assert report.sent == 2
        assert report.failed == 0
        tokens = sorted(call.args[2]["message"]["token"] for call in transport.send.await_args_list)
        assert tokens == ["tok-a", "tok-c"]

        access_token, project_id, message = transport.send.await_args_list[0].args
        assert access_token == "access-token"
        assert project_id == "cleanguard-test"
        assert message["message"]["data"] == {"type": "TICKET_ASSIGNED", "ticketId": "t-42"}
        assert message["message"]["notification"]["body"] == "You've been assigned: Spill in hallway"

    @pytest.mark.asyncio
    async def test_credential_failure(self, notification_settings):
        """测试换取访问令牌失败时整批失败"""
        credentials = _credentials()
        credentials.get_access_token = AsyncMock(side_effect=CredentialExchangeError("token endpoint down"))
        transport = _transport()
        channel = _channel(notification_settings, credentials=credentials, transport=transport)

        report = await channel.send(
            lookup(EventKey.TICKET_CREATED),
            [make_recipient("a@example.com", push_token="a"), make_recipient("b@example.com", push_token="b")],
            TICKET_DATA
        )

        assert report.sent == 0
        assert report.failed == 2
        assert [d.to_dict() for d in report.details] == [
            {"recipient_id": None, "success": False, "error": "credential exchange failed"}
        ]
        transport.send.assert_not_called()

    @pytest.mark.asyncio
    async def test_unregistered_token_cleared(self, notification_settings):
        """测试失效令牌被清除，其余接收人正常推送"""
        stale = make_recipient("stale@example.com", push_token="stale-token")
        fresh = make_recipient("fresh@example.com", push_token="fresh-token")

        async def send(access_token, project_id, message):
            if message["message"]["token"] == "stale-token":
                raise PushDeliveryError("Requested entity was not found.", error_code="UNREGISTERED", status=404)
            return "projects/cleanguard-test/messages/2"

        token_store = FakeTokenStore()
        channel = _channel(notification_settings, token_store=token_store, transport=_transport(side_effect=send))

        report = await channel.send(lookup(EventKey.TICKET_CREATED), [stale, fresh], TICKET_DATA)

        assert report.sent == 1
        assert report.failed == 1
        assert token_store.cleared == [stale.user_id]
        failed = next(d for d in report.details if not d.success)
        assert failed.recipient_id == stale.user_id

    @pytest.mark.asyncio
    async def test_other_errors_keep_token(self, notification_settings):
        """测试其他错误不清除令牌"""
        token_store = FakeTokenStore()
        transport = _transport(side_effect=PushDeliveryError("Quota exceeded", error_code="QUOTA_EXCEEDED", status=429))
        channel = _channel(notification_settings, token_store=token_store, transport=transport)

        report = await channel.send(lookup(EventKey.TICKET_CREATED), [make_recipient(push_token="tok")], TICKET_DATA)

        assert report.failed == 1
        assert token_store.cleared == []

    @pytest.mark.asyncio
    async def test_token_store_failure_logged_once(self, notification_settings):
        """测试清除令牌失败只尝试一次且不影响结果"""
        token_store = FakeTokenStore(error=RuntimeError("db down"))
        transport = _transport(side_effect=PushDeliveryError("gone", error_code="UNREGISTERED", status=404))
        channel = _channel(notification_settings, token_store=token_store, transport=transport)
        recipient = make_recipient(push_token="tok")

        report = await channel.send(lookup(EventKey.TICKET_CREATED), [recipient], TICKET_DATA)

        assert report.failed == 1
        assert token_store.cleared == [recipient.user_id]

    @pytest.mark.asyncio
    async def test_transport_exception_recorded(self, notification_settings):
        """测试网络异常记为单个接收人失败"""
        transport = _transport(side_effect=ConnectionError("reset by peer"))
        channel = _channel(notification_settings, transport=transport)

        report = await channel.send(lookup(EventKey.TICKET_CREATED), [make_recipient(push_token="tok")], TICKET_DATA)

        assert report.failed == 1
        assert report.details[0].error == "reset by peer"


class TestPushChannelVerify:
    """测试推送渠道检查"""

    @pytest.mark.asyncio
    async def test_verify_disabled(self, disabled_push_config, notification_settings):
        channel = PushChannel(disabled_push_config, FakeTokenStore(), notification_settings, transport=_transport())
        assert await channel.verify() == {"connected": False, "reason": "push not enabled"}

    @pytest.mark.asyncio
    async def test_verify_token_exchange(self, notification_settings):
        channel = _channel(notification_settings)
        assert await channel.verify() == {"connected": True}

    @pytest.mark.asyncio
    async def test_close_closes_transport(self, notification_settings):
        transport = _transport()
        channel = _channel(notification_settings, transport=transport)
        await channel.close()
        transport.close.assert_awaited_once()
