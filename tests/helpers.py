"""测试辅助工具"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from facility_platform.database.repositories import UserRepository
from facility_platform.notifications.types import (
    DeliveryDetail, DeliveryReport, NotifyResult, NotifyStatus, Recipient
)
from shared.models.user import UserRole


async def create_user(
    session_factory,
    email: str,
    role: UserRole = UserRole.INSPECTOR,
    name: Optional[str] = None,
    **fields: Any
) -> uuid.UUID:
    """在独立会话中创建用户并返回其ID"""
    async with session_factory() as session:
        user = await UserRepository(session).create({
            "name": name or email.split("@")[0].title(),
            "email": email,
            "role": role,
            **fields,
        })
        return user.id


def make_recipient(
    email: Optional[str] = "user@example.com",
    user_id: Optional[str] = None,
    **fields: Any
) -> Recipient:
    """构造测试用接收人"""
    return Recipient(
        user_id=user_id or str(uuid.uuid4()),
        email=email,
        name=fields.pop("name", "Test User"),
        role=fields.pop("role", "inspector"),
        **fields,
    )


class RecordingChannel:
    """记录调用参数的测试渠道"""

    def __init__(self, report: Optional[DeliveryReport] = None, error: Optional[BaseException] = None):
        self.report = report or DeliveryReport.from_details([DeliveryDetail(recipient_id="u1", success=True)])
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def send(self, event, recipients, data, meta=None):
        self.calls.append({"event": event, "recipients": recipients, "data": data, "meta": meta})
        if self.error is not None:
            raise self.error
        return self.report


class FakeNotificationService:
    """记录 notify 调用的通知服务替身"""

    def __init__(self, fail_on: Optional[str] = None):
        self.calls: List[Dict[str, Any]] = []
        self.fail_on = fail_on

    async def notify(self, event_key, payload=None):
        key = getattr(event_key, "value", event_key)
        if self.fail_on == key:
            raise RuntimeError(f"notify failed for {key}")
        self.calls.append({"event": key, "payload": payload})
        return NotifyResult(status=NotifyStatus.DISPATCHED)

    def events(self) -> List[str]:
        return [call["event"] for call in self.calls]


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)
