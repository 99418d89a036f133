"""
通知系统模块

业务事件通过 NotificationService.notify() 分发到邮件和推送渠道；
ReminderScheduler 每天生成工单和检查的提醒。
"""

from .types import (
    EventKey, ChannelName, EventPriority, Event, Recipient, NotificationMeta,
    NotificationPayload, DeliveryDetail, DeliveryReport, ChannelOutcome,
    OutcomeStatus, NotifyResult, NotifyStatus
)
from .events import EventRegistry, default_registry, lookup
from .exceptions import (
    NotificationError, ChannelConfigurationError, CredentialExchangeError, PushDeliveryError
)
from .base import NotificationChannel
from .email import EmailChannel
from .push import PushChannel, FcmTransport
from .credentials import ServiceAccountCredentials
from .manager import NotificationService
from .dispatcher import NotificationDispatcher
from .recipients import RecipientResolver, format_recipient, merge_recipients
from .scheduler import ReminderScheduler
from .templates import EMAIL_TEMPLATES, PUSH_TEMPLATES, check_template_coverage
from .bootstrap import DatabaseTokenStore, initialize_notifications, create_reminder_scheduler

__all__ = [
    'EventKey',
    'ChannelName',
    'EventPriority',
    'Event',
    'Recipient',
    'NotificationMeta',
    'NotificationPayload',
    'DeliveryDetail',
    'DeliveryReport',
    'ChannelOutcome',
    'OutcomeStatus',
    'NotifyResult',
    'NotifyStatus',
    'EventRegistry',
    'default_registry',
    'lookup',
    'NotificationError',
    'ChannelConfigurationError',
    'CredentialExchangeError',
    'PushDeliveryError',
    'NotificationChannel',
    'EmailChannel',
    'PushChannel',
    'FcmTransport',
    'ServiceAccountCredentials',
    'NotificationService',
    'NotificationDispatcher',
    'RecipientResolver',
    'format_recipient',
    'merge_recipients',
    'ReminderScheduler',
    'EMAIL_TEMPLATES',
    'PUSH_TEMPLATES',
    'check_template_coverage',
    'DatabaseTokenStore',
    'initialize_notifications',
    'create_reminder_scheduler',
]
