"""
通知事件注册表单元测试
"""

import pytest

from facility_platform.notifications.events import EVENTS, EventRegistry, default_registry, lookup
from facility_platform.notifications.types import ChannelName, Event, EventKey, EventPriority


class TestEventRegistry:
    """测试事件注册表"""

    def test_all_event_keys_registered(self):
        """测试所有事件标识均已注册"""
        assert len(default_registry) == len(EventKey)
        for key in EventKey:
            event = default_registry.lookup(key)
            assert event is not None
            assert event.key == key
            assert event.title

    def test_lookup_by_string(self):
        """测试用字符串查找事件"""
        event = lookup("TICKET_CREATED")
        assert event is EVENTS[EventKey.TICKET_CREATED]
        assert event.channels == (ChannelName.EMAIL, ChannelName.PUSH)

    def test_lookup_unknown_returns_none(self):
        """测试未知事件返回 None"""
        assert lookup("UNKNOWN_EVENT") is None
        assert lookup("") is None
        assert lookup(None) is None
        assert "UNKNOWN_EVENT" not in default_registry

    def test_account_events_are_email_only(self):
        """测试账号类事件只走邮件"""
        for key in (EventKey.USER_WELCOME, EventKey.USER_UPDATED):
            assert default_registry.lookup(key).channels == (ChannelName.EMAIL,)

    @pytest.mark.parametrize("key", [
        EventKey.TICKET_URGENT,
        EventKey.TICKET_PRIORITY_ESCALATED,
        EventKey.INSPECTION_DEFICIENT,
        EventKey.TICKET_OVERDUE,
    ])
    def test_high_priority_events(self, key):
        """测试高优先级事件"""
        event = default_registry.lookup(key)
        assert event.priority == EventPriority.HIGH
        assert event.is_high_priority is True

    def test_other_events_normal_priority(self):
        """测试其余事件为普通优先级"""
        high = {
            EventKey.TICKET_URGENT,
            EventKey.TICKET_PRIORITY_ESCALATED,
            EventKey.INSPECTION_DEFICIENT,
            EventKey.TICKET_OVERDUE,
        }
        for event in default_registry:
            if event.key not in high:
                assert event.priority == EventPriority.NORMAL

    def test_channels_are_non_empty(self):
        """测试每个事件至少声明一个渠道"""
        for event in default_registry:
            assert len(event.channels) >= 1

    def test_custom_registry(self):
        """测试自定义注册表"""
        event = Event(EventKey.TICKET_CREATED, "Created", (ChannelName.EMAIL,))
        registry = EventRegistry({EventKey.TICKET_CREATED: event})

        assert len(registry) == 1
        assert registry.keys() == ["TICKET_CREATED"]
        assert registry.lookup(EventKey.TICKET_CREATED) is event
        assert registry.lookup(EventKey.TICKET_ASSIGNED) is None

    def test_empty_registry(self):
        """测试空注册表"""
        registry = EventRegistry({})
        assert len(registry) == 0
        assert registry.lookup("TICKET_CREATED") is None

    def test_event_is_immutable(self):
        """测试事件定义不可修改"""
        event = lookup(EventKey.TICKET_CREATED)
        with pytest.raises(AttributeError):
            event.title = "changed"
