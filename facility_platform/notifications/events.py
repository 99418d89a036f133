"""
通知事件注册表

所有业务事件在此集中定义：事件支持哪些渠道、默认优先级。
注册表在导入时构建，运行期只读。
"""

import logging
from typing import Dict, Iterator, List, Optional, Union

from .types import ChannelName, Event, EventKey, EventPriority

logger = logging.getLogger(__name__)

_EMAIL_PUSH = (ChannelName.EMAIL, ChannelName.PUSH)
# 账号类事件不走推送：新用户此时还没有设备令牌
_EMAIL_ONLY = (ChannelName.EMAIL,)


EVENTS: Dict[EventKey, Event] = {
    event.key: event for event in (
        # 工单事件
        Event(EventKey.TICKET_CREATED, "New Ticket Created", _EMAIL_PUSH),
        Event(EventKey.TICKET_ASSIGNED, "Ticket Assigned to You", _EMAIL_PUSH),
        Event(EventKey.TICKET_SCHEDULED, "Ticket Scheduled", _EMAIL_PUSH),
        Event(EventKey.TICKET_STATUS_CHANGED, "Ticket Status Updated", _EMAIL_PUSH),
        Event(EventKey.TICKET_RESOLVED, "Ticket Resolved", _EMAIL_PUSH),
        Event(EventKey.TICKET_REOPENED, "Ticket Reopened", _EMAIL_PUSH),
        Event(EventKey.TICKET_REASSIGNED, "Ticket Reassigned", _EMAIL_PUSH),
        Event(EventKey.TICKET_VERIFIED, "Ticket Verified", _EMAIL_PUSH),
        Event(EventKey.TICKET_URGENT, "Urgent Ticket Created", _EMAIL_PUSH, EventPriority.HIGH),
        Event(EventKey.TICKET_PRIORITY_ESCALATED, "Ticket Priority Escalated", _EMAIL_PUSH, EventPriority.HIGH),
        Event(EventKey.BULK_TICKETS_CREATED, "Bulk Tickets Created from Inspection", _EMAIL_PUSH),

        # 检查事件
        Event(EventKey.INSPECTION_ASSIGNED, "Inspection Assigned to You", _EMAIL_PUSH),
        Event(EventKey.INSPECTION_SCHEDULED, "Inspection Scheduled", _EMAIL_PUSH),
        Event(EventKey.INSPECTION_COMPLETED, "Inspection Completed", _EMAIL_PUSH),
        Event(EventKey.INSPECTION_REASSIGNED, "Inspection Reassigned", _EMAIL_PUSH),
        Event(EventKey.INSPECTION_DELETED, "Inspection Deleted", _EMAIL_PUSH),
        Event(EventKey.INSPECTION_DEFICIENT, "Deficient Inspection Alert", _EMAIL_PUSH, EventPriority.HIGH),

        # 账号事件
        Event(EventKey.USER_WELCOME, "Welcome to CleanGuard QC", _EMAIL_ONLY),
        Event(EventKey.USER_UPDATED, "Account Updated", _EMAIL_ONLY),

        # 定时提醒
        Event(EventKey.TICKET_REMINDER_TODAY, "Ticket Scheduled Today", _EMAIL_PUSH),
        Event(EventKey.TICKET_REMINDER_TOMORROW, "Ticket Scheduled Tomorrow", _EMAIL_PUSH),
        Event(EventKey.TICKET_OVERDUE, "Ticket Overdue", _EMAIL_PUSH, EventPriority.HIGH),
        Event(EventKey.INSPECTION_REMINDER_TODAY, "Inspection Scheduled Today", _EMAIL_PUSH),
        Event(EventKey.INSPECTION_REMINDER_TOMORROW, "Inspection Scheduled Tomorrow", _EMAIL_PUSH),
    )
}


class EventRegistry:
    """只读事件注册表"""

    def __init__(self, events: Optional[Dict[EventKey, Event]] = None):
        self._events: Dict[str, Event] = {
            key.value: event for key, event in (events if events is not None else EVENTS).items()
        }

    def lookup(self, key: Union[EventKey, str, None]) -> Optional[Event]:
        """按事件标识查找事件，未知事件返回 None"""
        if key is None:
            return None
        if isinstance(key, EventKey):
            key = key.value
        return self._events.get(key)

    def keys(self) -> List[str]:
        """获取所有事件标识"""
        return list(self._events.keys())

    def __contains__(self, key) -> bool:
        return self.lookup(key) is not None

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events.values())

    def __len__(self) -> int:
        return len(self._events)


# 默认注册表
default_registry = EventRegistry()


def lookup(key: Union[EventKey, str, None]) -> Optional[Event]:
    """在默认注册表中查找事件"""
    return default_registry.lookup(key)
