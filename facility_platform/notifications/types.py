"""
通知系统类型定义
"""

from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union
from dataclasses import dataclass, field


class EventKey(str, Enum):
    """业务事件标识枚举"""
    # 工单事件
    TICKET_CREATED = "TICKET_CREATED"
    TICKET_ASSIGNED = "TICKET_ASSIGNED"
    TICKET_SCHEDULED = "TICKET_SCHEDULED"
    TICKET_STATUS_CHANGED = "TICKET_STATUS_CHANGED"
    TICKET_RESOLVED = "TICKET_RESOLVED"
    TICKET_REOPENED = "TICKET_REOPENED"
    TICKET_REASSIGNED = "TICKET_REASSIGNED"
    TICKET_VERIFIED = "TICKET_VERIFIED"
    TICKET_URGENT = "TICKET_URGENT"
    TICKET_PRIORITY_ESCALATED = "TICKET_PRIORITY_ESCALATED"
    BULK_TICKETS_CREATED = "BULK_TICKETS_CREATED"

    # 检查事件
    INSPECTION_ASSIGNED = "INSPECTION_ASSIGNED"
    INSPECTION_SCHEDULED = "INSPECTION_SCHEDULED"
    INSPECTION_COMPLETED = "INSPECTION_COMPLETED"
    INSPECTION_REASSIGNED = "INSPECTION_REASSIGNED"
    INSPECTION_DELETED = "INSPECTION_DELETED"
    INSPECTION_DEFICIENT = "INSPECTION_DEFICIENT"

    # 账号事件
    USER_WELCOME = "USER_WELCOME"
    USER_UPDATED = "USER_UPDATED"

    # 定时提醒
    TICKET_REMINDER_TODAY = "TICKET_REMINDER_TODAY"
    TICKET_REMINDER_TOMORROW = "TICKET_REMINDER_TOMORROW"
    TICKET_OVERDUE = "TICKET_OVERDUE"
    INSPECTION_REMINDER_TODAY = "INSPECTION_REMINDER_TODAY"
    INSPECTION_REMINDER_TOMORROW = "INSPECTION_REMINDER_TOMORROW"


class ChannelName(str, Enum):
    """通知渠道枚举"""
    EMAIL = "email"
    PUSH = "push"


class EventPriority(str, Enum):
    """事件优先级枚举"""
    NORMAL = "normal"
    HIGH = "high"


class OutcomeStatus(Enum):
    """单个渠道的发送结果"""
    DELIVERED = "delivered"
    SKIPPED = "skipped"
    FAILED = "failed"


class NotifyStatus(Enum):
    """一次 notify 调用的整体结果"""
    DISPATCHED = "dispatched"
    SKIPPED = "skipped"
    ERROR = "error"


@dataclass(frozen=True)
class Event:
    """事件定义，启动时由静态表构建，运行期不可修改"""
    key: EventKey
    title: str
    channels: tuple
    priority: EventPriority = EventPriority.NORMAL

    @property
    def is_high_priority(self) -> bool:
        return self.priority == EventPriority.HIGH


@dataclass
class Recipient:
    """通知接收人

    email_opt_in / push_opt_in 为 None 表示未设置，按已订阅处理。
    """
    user_id: Optional[str]
    email: Optional[str]
    name: Optional[str] = None
    role: Optional[str] = None
    email_opt_in: Optional[bool] = None
    push_opt_in: Optional[bool] = None
    push_token: Optional[str] = None

    @property
    def wants_email(self) -> bool:
        return self.email_opt_in is not False

    @property
    def wants_push(self) -> bool:
        return self.push_opt_in is not False

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Recipient":
        """从字典构建接收人，兼容驼峰命名的键"""
        def pick(*keys):
            for key in keys:
                if key in data:
                    return data[key]
            return None

        user_id = pick("user_id", "id", "_id")
        return cls(
            user_id=str(user_id) if user_id is not None else None,
            email=pick("email"),
            name=pick("name"),
            role=pick("role"),
            email_opt_in=pick("email_opt_in", "notificationEmail"),
            push_opt_in=pick("push_opt_in", "notificationPush"),
            push_token=pick("push_token", "fcmToken"),
        )


@dataclass
class NotificationMeta:
    """通知元数据"""
    triggered_by: Optional[str] = None


@dataclass
class NotificationPayload:
    """通知载荷"""
    recipients: List[Recipient] = field(default_factory=list)
    data: Dict[str, Any] = field(default_factory=dict)
    meta: NotificationMeta = field(default_factory=NotificationMeta)

    @classmethod
    def coerce(cls, payload: Union["NotificationPayload", Mapping[str, Any], None]) -> "NotificationPayload":
        """把字典形式的载荷统一转换为 NotificationPayload"""
        if payload is None:
            return cls()
        if isinstance(payload, cls):
            return payload

        recipients = [
            item if isinstance(item, Recipient) else Recipient.from_dict(item)
            for item in (payload.get("recipients") or [])
        ]
        meta = payload.get("meta") or {}
        if not isinstance(meta, NotificationMeta):
            meta = NotificationMeta(
                triggered_by=meta.get("triggered_by", meta.get("triggeredBy"))
            )
        return cls(
            recipients=recipients,
            data=dict(payload.get("data") or {}),
            meta=meta,
        )


@dataclass
class DeliveryDetail:
    """单个接收人的投递结果"""
    recipient_id: Optional[str]
    success: bool
    error: Optional[str] = None
    message_id: Optional[str] = None
    dev: bool = False

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "recipient_id": self.recipient_id,
            "success": self.success,
        }
        if self.error is not None:
            result["error"] = self.error
        if self.message_id is not None:
            result["message_id"] = self.message_id
        if self.dev:
            result["dev"] = True
        return result


@dataclass
class DeliveryReport:
    """渠道一次发送的汇总结果，或跳过标记"""
    sent: int = 0
    failed: int = 0
    details: List[DeliveryDetail] = field(default_factory=list)
    skipped: bool = False
    reason: Optional[str] = None

    @classmethod
    def skip(cls, reason: str) -> "DeliveryReport":
        return cls(skipped=True, reason=reason)

    @classmethod
    def from_details(cls, details: Sequence[DeliveryDetail]) -> "DeliveryReport":
        sent = sum(1 for detail in details if detail.success)
        return cls(sent=sent, failed=len(details) - sent, details=list(details))


@dataclass
class ChannelOutcome:
    """notify 结果中单个渠道的条目"""
    status: OutcomeStatus
    report: Optional[DeliveryReport] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def from_report(cls, report: DeliveryReport) -> "ChannelOutcome":
        if report.skipped:
            return cls(status=OutcomeStatus.SKIPPED, reason=report.reason, report=report)
        return cls(status=OutcomeStatus.DELIVERED, report=report)

    @classmethod
    def skipped(cls, reason: str) -> "ChannelOutcome":
        return cls(status=OutcomeStatus.SKIPPED, reason=reason)

    @classmethod
    def failure(cls, error: str) -> "ChannelOutcome":
        return cls(status=OutcomeStatus.FAILED, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.status == OutcomeStatus.SKIPPED:
            return {"skipped": True, "reason": self.reason}
        if self.status == OutcomeStatus.FAILED:
            return {"success": False, "error": self.error}
        return {
            "success": True,
            "sent": self.report.sent,
            "failed": self.report.failed,
            "details": [detail.to_dict() for detail in self.report.details],
        }


@dataclass
class NotifyResult:
    """notify 的返回值"""
    status: NotifyStatus
    channels: Dict[ChannelName, ChannelOutcome] = field(default_factory=dict)
    reason: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def skipped(cls, reason: str) -> "NotifyResult":
        return cls(status=NotifyStatus.SKIPPED, reason=reason)

    @classmethod
    def failure(cls, error: str) -> "NotifyResult":
        return cls(status=NotifyStatus.ERROR, error=error)

    def to_dict(self) -> Dict[str, Any]:
        if self.status == NotifyStatus.SKIPPED:
            return {"skipped": True, "reason": self.reason}
        if self.status == NotifyStatus.ERROR:
            return {"error": self.error}
        return {name.value: outcome.to_dict() for name, outcome in self.channels.items()}
