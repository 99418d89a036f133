"""
提醒调度器

每天在业务时区的固定时间运行一次，依次执行五项提醒：
今日工单、明日工单、逾期工单、今日检查、明日检查。
每项相互隔离，某一项失败不影响其余各项。

调度器不记录已发送的提醒，同一天手动重复执行会重复发送。
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple, Union
from zoneinfo import ZoneInfo

from croniter import croniter

from facility_platform.database.repositories import InspectionRepository, TicketRepository
from shared.models.base import as_utc

from .manager import NotificationService
from .recipients import RecipientResolver, merge_recipients
from .types import EventKey


logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class DayWindow:
    """某个本地日历日对应的UTC时间范围 [start, end)，end 为次日本地零点"""
    start: datetime
    end: datetime

    def __contains__(self, instant: datetime) -> bool:
        return self.start <= as_utc(instant) < self.end


def get_day_bounds(local_day: date, tz: ZoneInfo) -> DayWindow:
    """本地当天零点至次日零点换算为UTC，夏令时切换日为23或25小时"""
    start = datetime.combine(local_day, time.min, tzinfo=tz)
    end = datetime.combine(local_day + ONE_DAY, time.min, tzinfo=tz)
    return DayWindow(start=start.astimezone(timezone.utc), end=end.astimezone(timezone.utc))


def local_dates(now: datetime, tz: ZoneInfo) -> Tuple[date, date]:
    """返回业务时区中的今天和明天"""
    today = as_utc(now).astimezone(tz).date()
    return today, today + ONE_DAY


def days_overdue(due: datetime, today_start: datetime) -> int:
    """逾期天数：逾期时长除以一天向上取整，整24小时为1天"""
    elapsed = as_utc(today_start) - as_utc(due)
    return -((-elapsed) // ONE_DAY)


def _value(value: Any) -> Any:
    return getattr(value, "value", value)


def ticket_snapshot(ticket) -> Dict[str, Any]:
    """提取模板需要的工单字段"""
    return {
        "id": str(ticket.id),
        "title": ticket.title,
        "priority": _value(ticket.priority),
        "status": _value(ticket.status),
        "location_name": ticket.location.name if ticket.location else "N/A",
        "scheduled_date": as_utc(ticket.scheduled_date),
        "due_date": as_utc(ticket.due_date),
    }


def inspection_snapshot(inspection) -> Dict[str, Any]:
    """提取模板需要的检查字段"""
    return {
        "id": str(inspection.id),
        "location_name": inspection.location.name if inspection.location else "N/A",
        "template_name": inspection.template.name if inspection.template else "N/A",
        "status": _value(inspection.status),
        "scheduled_date": as_utc(inspection.scheduled_date),
    }


class ReminderScheduler:
    """提醒调度器"""

    def __init__(
        self,
        service: NotificationService,
        resolver: RecipientResolver,
        session_factory: Callable[[], Any],
        timezone_name: Union[str, ZoneInfo] = "America/Los_Angeles",
        hour: int = 8,
        minute: int = 0,
        clock: Callable[[], datetime] = utc_now
    ):
        self.service = service
        self.resolver = resolver
        self.session_factory = session_factory
        self.tz = timezone_name if isinstance(timezone_name, ZoneInfo) else ZoneInfo(timezone_name)
        self.hour = hour
        self.minute = minute
        self.clock = clock

        self._running = False
        self._scheduler_task: Optional[asyncio.Task] = None
        self._next_run: Optional[datetime] = None
        self._last_summary: Optional[Dict[str, Any]] = None
        self._last_run_at: Optional[datetime] = None

    @property
    def cron_expression(self) -> str:
        return f"{self.minute} {self.hour} * * *"

    def next_run_time(self, now: Optional[datetime] = None) -> datetime:
        """下一次触发的UTC时间，按业务时区计算"""
        local_now = as_utc(now or self.clock()).astimezone(self.tz)
        next_local = croniter(self.cron_expression, local_now).get_next(datetime)
        return next_local.astimezone(timezone.utc)

    async def start(self):
        """启动调度器"""
        if self._running:
            logger.warning("提醒调度器已在运行")
            return

        self._running = True
        self._scheduler_task = asyncio.create_task(self._scheduler_loop())
        logger.info(f"提醒调度器已启动 (每天 {self.hour:02d}:{self.minute:02d} {self.tz.key})")

    async def stop(self):
        """停止调度器"""
        if not self._running:
            return

        self._running = False
        if self._scheduler_task:
            self._scheduler_task.cancel()
            try:
                await self._scheduler_task
            except asyncio.CancelledError:
                pass
            self._scheduler_task = None
        self._next_run = None

        logger.info("提醒调度器已停止")

    async def _scheduler_loop(self):
        """调度器主循环"""
        while self._running:
            now = as_utc(self.clock())
            # 从上一次计划时间往后推算，提前唤醒时不会再次命中同一个触发点
            anchor = max(now, self._next_run) if self._next_run else now
            next_run = self.next_run_time(anchor)
            self._next_run = next_run
            delay = max(0.0, (next_run - now).total_seconds())
            logger.info(f"下一次提醒任务: {next_run.astimezone(self.tz).isoformat()}")

            await asyncio.sleep(delay)

            try:
                await self.run_daily_job()
            except Exception:
                logger.exception("每日提醒任务发生未处理的异常")

    async def run_daily_job(self) -> Dict[str, Any]:
        """
        执行一次每日提醒

        Returns:
            Dict[str, Any]: 每项提醒发送的通知数，失败的项为 "error"
        """
        now = self.clock()
        today, tomorrow = local_dates(now, self.tz)
        today_window = get_day_bounds(today, self.tz)
        tomorrow_window = get_day_bounds(tomorrow, self.tz)

        logger.info(f"每日提醒任务开始: {as_utc(now).astimezone(self.tz).isoformat()}")

        sweeps = (
            ("ticket_today", lambda: self.send_ticket_reminders(EventKey.TICKET_REMINDER_TODAY, today_window)),
            ("ticket_tomorrow", lambda: self.send_ticket_reminders(EventKey.TICKET_REMINDER_TOMORROW, tomorrow_window)),
            ("ticket_overdue", lambda: self.send_overdue_alerts(today_window.start)),
            ("inspection_today", lambda: self.send_inspection_reminders(EventKey.INSPECTION_REMINDER_TODAY, today_window)),
            ("inspection_tomorrow", lambda: self.send_inspection_reminders(EventKey.INSPECTION_REMINDER_TOMORROW, tomorrow_window)),
        )

        summary: Dict[str, Any] = {}
        for name, sweep in sweeps:
            try:
                summary[name] = await sweep()
            except Exception:
                logger.exception(f"提醒项 {name} 执行失败")
                summary[name] = "error"

        self._last_summary = summary
        self._last_run_at = as_utc(now)
        logger.info(f"每日提醒任务完成: {summary}")
        return summary

    async def send_ticket_reminders(self, event_key: EventKey, window: DayWindow) -> int:
        """给计划日期落在窗口内的工单负责人发送提醒"""
        async with self.session_factory() as session:
            tickets = await TicketRepository(session).find_scheduled_between(window.start, window.end)
            items = [(ticket.assigned_to_id, ticket_snapshot(ticket)) for ticket in tickets]

        logger.info(f"{event_key.value}: 找到 {len(items)} 个工单")

        notified = 0
        for assignee_id, ticket in items:
            recipient = await self.resolver.user_recipient(assignee_id)
            if recipient is None:
                continue

            await self.service.notify(event_key, {
                "recipients": [recipient],
                "data": {"ticket": ticket, "timezone": self.tz.key},
            })
            notified += 1
        return notified

    async def send_overdue_alerts(self, today_start: datetime) -> int:
        """给管理员和负责人发送逾期工单告警"""
        async with self.session_factory() as session:
            tickets = await TicketRepository(session).find_overdue(today_start)
            items = [(ticket.assigned_to_id, ticket_snapshot(ticket)) for ticket in tickets]

        logger.info(f"逾期工单: 找到 {len(items)} 个")

        notified = 0
        for assignee_id, ticket in items:
            # 每个工单重新查询，管理员名单以当前数据为准
            admins = await self.resolver.admin_recipients()
            assignee = await self.resolver.user_recipient(assignee_id) if assignee_id else None
            recipients = merge_recipients(admins, [assignee] if assignee else [])

            await self.service.notify(EventKey.TICKET_OVERDUE, {
                "recipients": recipients,
                "data": {
                    "ticket": ticket,
                    "days_overdue": days_overdue(ticket["due_date"], today_start),
                    "timezone": self.tz.key,
                },
            })
            notified += 1
        return notified

    async def send_inspection_reminders(self, event_key: EventKey, window: DayWindow) -> int:
        """给计划日期落在窗口内的检查员发送提醒"""
        async with self.session_factory() as session:
            inspections = await InspectionRepository(session).find_scheduled_between(window.start, window.end)
            items = [(inspection.inspector_id, inspection_snapshot(inspection)) for inspection in inspections]

        logger.info(f"{event_key.value}: 找到 {len(items)} 个检查")

        notified = 0
        for inspector_id, inspection in items:
            recipient = await self.resolver.user_recipient(inspector_id)
            if recipient is None:
                continue

            await self.service.notify(event_key, {
                "recipients": [recipient],
                "data": {"inspection": inspection, "timezone": self.tz.key},
            })
            notified += 1
        return notified

    def get_status(self) -> Dict[str, Any]:
        """获取调度器状态"""
        return {
            "running": self._running,
            "timezone": self.tz.key,
            "cron": self.cron_expression,
            "next_run": self.next_run_time().isoformat() if self._running else None,
            "last_run": self._last_run_at.isoformat() if self._last_run_at else None,
            "last_summary": self._last_summary,
        }
