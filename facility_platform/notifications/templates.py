"""
通知模板

邮件模板产出 {subject, html}，推送模板产出 {title, body, data}。
模板使用 jinja2 渲染，缺失字段渲染为空字符串而不是抛出异常。
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

from jinja2 import ChainableUndefined, DictLoader, Environment, Undefined, pass_context

from shared.config import app_config

from .events import EventRegistry, default_registry
from .types import ChannelName, EventKey

logger = logging.getLogger(__name__)


PRIORITY_COLORS = {
    "low": "#22c55e",
    "medium": "#f59e0b",
    "high": "#f97316",
    "urgent": "#ef4444",
}

STATUS_COLORS = {
    "open": "#3b82f6",
    "in_progress": "#f59e0b",
    "resolved": "#22c55e",
    "verified": "#8b5cf6",
    "pending": "#f59e0b",
    "completed": "#22c55e",
    "submitted": "#8b5cf6",
}


def _plain(value: Any) -> Any:
    if isinstance(value, Undefined) or value is None:
        return ""
    return getattr(value, "value", value)


def plain(value: Any) -> str:
    return str(_plain(value))


def label(value: Any) -> str:
    """in_progress -> IN PROGRESS"""
    return str(_plain(value)).replace("_", " ").upper()


def _zone(tz_name: Optional[str] = None) -> ZoneInfo:
    """未指定时区时使用配置的业务时区"""
    return ZoneInfo(tz_name or app_config.scheduler.timezone)


def _to_datetime(value: Any, tz_name: Optional[str] = None) -> Optional[datetime]:
    value = _plain(value)
    if value == "":
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(_zone(tz_name))
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return None


def long_date(value: Any, tz_name: Optional[str] = None) -> str:
    """Monday, January 5, 2026（按业务时区显示）"""
    dt = _to_datetime(value, tz_name)
    if dt is None:
        return "N/A"
    return f"{dt:%A, %B} {dt.day}, {dt.year}"


def long_datetime(value: Any, tz_name: Optional[str] = None) -> str:
    dt = _to_datetime(value, tz_name)
    if dt is None:
        return "N/A"
    return f"{dt:%A, %B} {dt.day}, {dt.year} at {dt:%I:%M %p}"


def short_date(value: Any, tz_name: Optional[str] = None) -> str:
    dt = _to_datetime(value, tz_name)
    if dt is None:
        return ""
    return f"{dt.month}/{dt.day}/{dt.year}"


def _in_render_zone(func):
    """模板数据中的 timezone 优先于配置的业务时区"""
    @pass_context
    def wrapper(context, value):
        return func(value, context.get("timezone"))
    return wrapper


def _build_environment(autoescape: bool, sources: Optional[Dict[str, str]] = None) -> Environment:
    env = Environment(
        loader=DictLoader(sources or {}),
        autoescape=autoescape,
        undefined=ChainableUndefined,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters.update(
        plain=plain,
        label=label,
        long_date=_in_render_zone(long_date),
        long_datetime=_in_render_zone(long_datetime),
        short_date=_in_render_zone(short_date),
    )
    env.globals.update(priority_colors=PRIORITY_COLORS, status_colors=STATUS_COLORS)
    return env


# ─── 邮件布局 ─────────────────────────────────────────────────────────

_LAYOUT = """<!DOCTYPE html>
<html lang="en">
<head><meta charset="UTF-8"><title>{{ subject }}</title></head>
<body style="margin:0;padding:0;background-color:#f4f6f9;font-family:'Segoe UI',Tahoma,Geneva,Verdana,sans-serif;">
<table width="100%" cellpadding="0" cellspacing="0" style="background-color:#f4f6f9;padding:32px 0;"><tr><td align="center">
<table width="600" cellpadding="0" cellspacing="0" style="background-color:#ffffff;border-radius:12px;max-width:100%;">
<tr><td style="background:#1e40af;padding:28px 32px;text-align:center;">
<h1 style="margin:0;color:#ffffff;font-size:22px;">CleanGuard QC</h1></td></tr>
<tr><td style="padding:32px;">
{% if tone %}<div style="background:{{ tone.bg }};border:2px solid {{ tone.border }};border-radius:8px;padding:16px;margin-bottom:24px;text-align:center;">{% endif %}
<h2 style="margin:0 0 8px 0;color:{{ tone.color if tone else '#1e293b' }};font-size:20px;">{% block heading %}{% endblock %}</h2>
<p style="margin:0 0 {{ '0' if tone else '24px' }} 0;color:{{ tone.color if tone else '#64748b' }};font-size:14px;">{% block intro %}{% endblock %}</p>
{% if tone %}</div>{% endif %}
<table width="100%" cellpadding="0" cellspacing="0" style="background:#f8fafc;border-radius:8px;padding:20px;margin-bottom:24px;">
{% block rows %}{% endblock %}
</table>
{% block extra %}{% endblock %}
<p style="margin:0;color:#64748b;font-size:13px;">{% block footer %}{% endblock %}</p>
</td></tr>
<tr><td style="background-color:#f8fafc;padding:20px 32px;border-top:1px solid #e2e8f0;text-align:center;">
<p style="margin:0;color:#94a3b8;font-size:12px;">This is an automated notification from CleanGuard QC.<br>Please do not reply to this email.</p>
</td></tr></table></td></tr></table>
</body>
</html>"""

_MACROS = """{% macro row(name, value) %}
<tr><td style="padding:8px 0;color:#64748b;font-size:14px;width:140px;vertical-align:top;">{{ name }}:</td>
<td style="padding:8px 0;color:#1e293b;font-size:14px;font-weight:500;">{{ value }}</td></tr>
{% endmacro %}
{% macro badge(text, color) %}<span style="display:inline-block;padding:4px 12px;border-radius:20px;font-size:12px;font-weight:600;color:#fff;background-color:{{ color }};">{{ text|label }}</span>{% endmacro %}
{% macro priority(value) %}{{ badge(value, priority_colors.get(value|plain|lower, '#6b7280')) }}{% endmacro %}
{% macro status(value) %}{{ badge(value, status_colors.get(value|plain|lower, '#6b7280')) }}{% endmacro %}
"""

# 醒目横幅的配色
TONES = {
    "red": {"bg": "#fef2f2", "border": "#fecaca", "color": "#dc2626"},
    "amber": {"bg": "#fef3c7", "border": "#f59e0b", "color": "#b45309"},
    "orange": {"bg": "#fff7ed", "border": "#fed7aa", "color": "#c2410c"},
}


def _page(body: str, heading: str = "", intro: str = "", footer: str = "",
          banner: Optional[Tuple[str, str, str]] = None) -> Tuple[str, Optional[str]]:
    """拼装事件模板：继承布局并填充各区块，返回 (模板源码, 横幅配色)"""
    tone = None
    if banner:
        heading, intro, tone = banner
    source = "\n".join((
        '{% extends "layout.html" %}',
        "{% block heading %}" + heading + "{% endblock %}",
        "{% block intro %}" + intro + "{% endblock %}",
        "{% block footer %}" + footer + "{% endblock %}",
        body,
    ))
    return source, tone


_T = "{{ m.row('Title', ticket.title) }}"
_T_PRIORITY = "{{ m.row('Priority', m.priority(ticket.priority)) }}"
_T_LOCATION = "{{ m.row('Location', ticket.location_name or 'N/A') }}"
_I_LOCATION = "{{ m.row('Location', inspection.location_name or 'N/A') }}"
_I_TEMPLATE = "{{ m.row('Template', inspection.template_name or 'N/A') }}"


def _rows(*rows: str) -> str:
    return '{% block rows %}{% import "macros.html" as m %}' + "\n".join(rows) + "{% endblock %}"


_EMAIL_SOURCES: Dict[EventKey, Tuple[str, Tuple[str, Optional[str]]]] = {
    # ─── 工单 ─────────────────────────────────────────────────
    EventKey.TICKET_CREATED: (
        "New Ticket: {{ ticket.title }}",
        _page(_rows(
            _T,
            "{{ m.row('Description', ticket.description or 'N/A') }}",
            _T_PRIORITY, _T_LOCATION,
            "{{ m.row('Created By', created_by_name or 'N/A') }}",
            "{% if ticket.due_date %}{{ m.row('Due Date', ticket.due_date|long_date) }}{% endif %}",
            "{% if ticket.assigned_to_name %}{{ m.row('Assigned To', ticket.assigned_to_name) }}{% endif %}",
        ), heading="New Ticket Created",
            intro="A new ticket has been created and requires attention.",
            footer="Log in to CleanGuard QC to view and manage this ticket."),
    ),
    EventKey.TICKET_ASSIGNED: (
        "Ticket Assigned: {{ ticket.title }}",
        _page(_rows(
            _T,
            "{{ m.row('Description', ticket.description or 'N/A') }}",
            _T_PRIORITY, _T_LOCATION,
            "{% if ticket.due_date %}{{ m.row('Due Date', ticket.due_date|long_date) }}{% endif %}",
        ), heading="Ticket Assigned to You",
            intro="You have been assigned a new ticket by <strong>{{ assigned_by_name }}</strong>.",
            footer="Please log in to CleanGuard QC to review and work on this ticket."),
    ),
    EventKey.TICKET_SCHEDULED: (
        "Ticket Scheduled: {{ ticket.title }}",
        _page(_rows(
            _T,
            "{{ m.row('Scheduled For', scheduled_date|long_datetime) }}",
            _T_PRIORITY, _T_LOCATION,
        ), heading="Ticket Scheduled",
            intro="A ticket assigned to you has been scheduled.",
            footer="Please make sure to complete this ticket by the scheduled date."),
    ),
    EventKey.TICKET_STATUS_CHANGED: (
        "Ticket Update: {{ ticket.title }} - {{ new_status|label }}",
        _page(_rows(
            _T,
            "{{ m.row('Previous Status', m.status(old_status)) }}",
            "{{ m.row('New Status', m.status(new_status)) }}",
            _T_LOCATION,
        ), heading="Ticket Status Updated",
            intro="The status of a ticket has been updated by <strong>{{ changed_by_name }}</strong>."),
    ),
    EventKey.TICKET_RESOLVED: (
        "Ticket Resolved: {{ ticket.title }}",
        _page(_rows(
            _T,
            "{{ m.row('Status', m.badge('resolved', '#22c55e')) }}",
            _T_LOCATION,
            "{{ m.row('Resolved By', resolved_by_name) }}",
            "{% if resolution_notes %}{{ m.row('Resolution Notes', resolution_notes) }}{% endif %}",
        ), heading="Ticket Resolved",
            intro="A ticket has been resolved by <strong>{{ resolved_by_name }}</strong>."),
    ),
    EventKey.TICKET_REOPENED: (
        "Ticket Reopened: {{ ticket.title }}",
        _page(_rows(
            _T, _T_PRIORITY, _T_LOCATION,
            "{{ m.row('Reopened By', reopened_by_name or 'N/A') }}",
            "{{ m.row('Status', m.status('open')) }}",
        ), banner=("Ticket Reopened", "This ticket requires further attention", "orange"),
            footer="Please review and take action on this ticket."),
    ),
    EventKey.TICKET_REASSIGNED: (
        "Ticket Reassigned: {{ ticket.title }}",
        _page(_rows(
            _T, _T_PRIORITY, _T_LOCATION,
            "{% if previous_assignee_name %}{{ m.row('Previously Assigned', previous_assignee_name) }}{% endif %}",
            "{{ m.row('Now Assigned To', assigned_to_name) }}",
        ), heading="Ticket Reassigned",
            intro="A ticket has been reassigned by <strong>{{ reassigned_by_name }}</strong>.",
            footer="Please log in to CleanGuard QC to review this ticket."),
    ),
    EventKey.TICKET_VERIFIED: (
        "Ticket Verified: {{ ticket.title }}",
        _page(_rows(
            _T,
            "{{ m.row('Status', m.badge('verified', '#8b5cf6')) }}",
            _T_LOCATION,
            "{{ m.row('Verified By', verified_by_name) }}",
        ), heading="Ticket Verified & Closed",
            intro="A resolved ticket has been verified by <strong>{{ verified_by_name }}</strong>."),
    ),
    EventKey.TICKET_URGENT: (
        "URGENT Ticket: {{ ticket.title }}",
        _page(_rows(
            _T,
            "{{ m.row('Description', ticket.description or 'N/A') }}",
            "{{ m.row('Priority', m.badge('urgent', '#ef4444')) }}",
            _T_LOCATION,
            "{{ m.row('Created By', created_by_name or 'N/A') }}",
        ), banner=("URGENT TICKET", "Immediate action required!", "red"),
            footer="Please address this ticket immediately."),
    ),
    EventKey.TICKET_PRIORITY_ESCALATED: (
        "Priority Escalated: {{ ticket.title }} -> {{ new_priority|label }}",
        _page(_rows(
            _T,
            "{{ m.row('Previous Priority', m.priority(old_priority)) }}",
            "{{ m.row('New Priority', m.priority(new_priority)) }}",
            _T_LOCATION,
            "{{ m.row('Escalated By', escalated_by_name or 'N/A') }}",
        ), banner=("Priority Escalated", "A ticket's priority has been raised", "red"),
            footer="Please address this ticket with the updated priority."),
    ),
    EventKey.BULK_TICKETS_CREATED: (
        "{{ count }} Tickets Created from Inspection at {{ location_name }}",
        _page(_rows(
            "{{ m.row('Location', location_name) }}",
            "{{ m.row('Tickets Created', count) }}",
        ) + (
            "{% block extra %}{% if items %}"
            "<p style=\"margin:0 0 8px 0;font-weight:600;\">Failed Items:</p><ul>"
            "{% for item in items[:10] %}<li>{{ item }}</li>{% endfor %}"
            "{% if items|length > 10 %}<li>... and more</li>{% endif %}</ul>"
            "{% endif %}{% endblock %}"
        ), heading="Bulk Tickets Created",
            intro="<strong>{{ count }}</strong> tickets were created from a failed inspection."),
    ),

    # ─── 检查 ─────────────────────────────────────────────────
    EventKey.INSPECTION_ASSIGNED: (
        "Inspection Assigned: {{ inspection.location_name }}",
        _page(_rows(
            _I_LOCATION, _I_TEMPLATE,
            "{{ m.row('Status', m.status('pending')) }}",
            "{% if inspection.scheduled_date %}{{ m.row('Scheduled', inspection.scheduled_date|long_date) }}{% endif %}",
        ), heading="Inspection Assigned to You",
            intro="You have been assigned a new inspection by <strong>{{ assigned_by_name }}</strong>.",
            footer="Please log in to CleanGuard QC to start this inspection."),
    ),
    EventKey.INSPECTION_SCHEDULED: (
        "Inspection Scheduled: {{ inspection.location_name }}",
        _page(_rows(
            _I_LOCATION,
            "{{ m.row('Scheduled For', scheduled_date|long_datetime) }}",
            _I_TEMPLATE,
        ), heading="Inspection Scheduled",
            intro="An inspection assigned to you has been scheduled.",
            footer="Please complete this inspection by the scheduled date."),
    ),
    EventKey.INSPECTION_COMPLETED: (
        "Inspection Completed: {{ inspection.location_name }} - Score: {{ inspection.total_score }}%",
        _page(_rows(
            _I_LOCATION,
            "{{ m.row('Inspector', inspector_name) }}",
            _I_TEMPLATE,
            "{{ m.row('Score', inspection.total_score ~ '%') }}",
            "{% if inspection.summary_comment %}{{ m.row('Summary', inspection.summary_comment) }}{% endif %}",
        ), heading="Inspection Completed",
            intro="An inspection has been completed by <strong>{{ inspector_name }}</strong>."),
    ),
    EventKey.INSPECTION_REASSIGNED: (
        "Inspection Reassigned: {{ inspection.location_name }}",
        _page(_rows(
            _I_LOCATION, _I_TEMPLATE,
            "{% if previous_inspector_name %}{{ m.row('Previously Assigned', previous_inspector_name) }}{% endif %}",
            "{{ m.row('Status', m.status('pending')) }}",
        ), heading="Inspection Reassigned",
            intro="An inspection has been reassigned by <strong>{{ reassigned_by_name }}</strong>.",
            footer="Please log in to CleanGuard QC to start this inspection."),
    ),
    EventKey.INSPECTION_DELETED: (
        "Inspection Deleted: {{ inspection.location_name }}",
        _page(_rows(
            _I_LOCATION, _I_TEMPLATE,
            "{% if inspection.total_score is not none and inspection.total_score is defined %}"
            "{{ m.row('Score', inspection.total_score ~ '%') }}{% endif %}",
            "{{ m.row('Deleted By', deleted_by_name) }}",
        ), heading="Inspection Deleted",
            intro="An inspection has been deleted by <strong>{{ deleted_by_name }}</strong>."),
    ),
    EventKey.INSPECTION_DEFICIENT: (
        "DEFICIENT Inspection: {{ inspection.location_name }} - Score: {{ inspection.total_score }}%",
        _page(_rows(
            _I_LOCATION,
            "{{ m.row('Inspector', inspector_name) }}",
            _I_TEMPLATE,
            "{{ m.row('Score', inspection.total_score ~ '%') }}",
            "{% if inspection.summary_comment %}{{ m.row('Summary', inspection.summary_comment) }}{% endif %}",
        ), banner=("DEFICIENT INSPECTION", "Score is below the acceptable threshold", "amber"),
            footer="Please review this inspection and take corrective action."),
    ),

    # ─── 账号 ─────────────────────────────────────────────────
    EventKey.USER_WELCOME: (
        "Welcome to CleanGuard QC",
        _page(_rows(
            "{{ m.row('Name', name) }}",
            "{{ m.row('Email', email) }}",
            "{{ m.row('Role', m.badge(role, '#3b82f6')) }}",
            "{% if temp_password %}{{ m.row('Temporary Password', temp_password) }}{% endif %}",
        ), heading="Welcome to CleanGuard QC!",
            intro="Your account has been created. Here are your login details:",
            footer="Log in to CleanGuard QC to get started."),
    ),
    EventKey.USER_UPDATED: (
        "Account Updated - CleanGuard QC",
        _page(_rows(
            "{% for field, value in (changes or {}).items() %}{{ m.row(field, value) }}{% endfor %}",
        ), heading="Account Updated",
            intro="Hi <strong>{{ name }}</strong>, your account has been updated:",
            footer="If you did not request these changes, please contact your administrator."),
    ),

    # ─── 定时提醒 ─────────────────────────────────────────────
    EventKey.TICKET_REMINDER_TODAY: (
        "Today: Ticket \"{{ ticket.title }}\" - Work Starts Today",
        _page(_rows(
            _T, _T_PRIORITY, _T_LOCATION,
            "{{ m.row('Status', m.status(ticket.status)) }}",
        ), banner=("Work Starts Today!", "You have a ticket scheduled for today", "amber"),
            footer="Please start working on this ticket today."),
    ),
    EventKey.TICKET_REMINDER_TOMORROW: (
        "Reminder: Ticket \"{{ ticket.title }}\" - Tomorrow",
        _page(_rows(
            _T,
            "{{ m.row('Scheduled For', ticket.scheduled_date|long_date) }}",
            _T_PRIORITY, _T_LOCATION,
        ), heading="Ticket Reminder - Tomorrow",
            intro="You have a ticket scheduled for <strong>tomorrow</strong>.",
            footer="Please prepare for this task so you can start on time."),
    ),
    EventKey.TICKET_OVERDUE: (
        "OVERDUE: Ticket \"{{ ticket.title }}\" - {{ days_overdue }} day(s) overdue",
        _page(_rows(
            _T,
            "{{ m.row('Due Date', ticket.due_date|long_date) }}",
            "{{ m.row('Days Overdue', days_overdue) }}",
            _T_PRIORITY, _T_LOCATION,
            "{{ m.row('Status', m.status(ticket.status)) }}",
        ), banner=("TICKET OVERDUE", "{{ days_overdue }} day(s) past the due date", "red"),
            footer="Please address this overdue ticket immediately."),
    ),
    EventKey.INSPECTION_REMINDER_TODAY: (
        "Today: Inspection at {{ inspection.location_name }} - Work Starts Today",
        _page(_rows(
            _I_LOCATION, _I_TEMPLATE,
            "{{ m.row('Status', m.status(inspection.status)) }}",
        ), banner=("Inspection Today!", "You have an inspection scheduled for today", "amber"),
            footer="Please complete this inspection today."),
    ),
    EventKey.INSPECTION_REMINDER_TOMORROW: (
        "Reminder: Inspection at {{ inspection.location_name }} - Tomorrow",
        _page(_rows(
            _I_LOCATION,
            "{{ m.row('Scheduled For', inspection.scheduled_date|long_date) }}",
            _I_TEMPLATE,
        ), heading="Inspection Reminder - Tomorrow",
            intro="You have an inspection scheduled for <strong>tomorrow</strong>.",
            footer="Please prepare for this inspection so you can start on time."),
    ),
}


_html_env = _build_environment(
    autoescape=True,
    sources=dict(
        {"layout.html": _LAYOUT, "macros.html": _MACROS},
        **{f"{key.value}.html": page for key, (_, (page, _tone)) in _EMAIL_SOURCES.items()}
    ),
)
_text_env = _build_environment(autoescape=False)


@dataclass(frozen=True)
class RenderedEmail:
    subject: str
    html: str


@dataclass(frozen=True)
class RenderedPush:
    title: str
    body: str
    data: Dict[str, str]


class EmailTemplate:
    """单个事件的邮件模板"""

    def __init__(self, key: EventKey, subject: str, tone: Optional[str] = None):
        self.key = key
        self.tone = TONES.get(tone) if tone else None
        self._subject = _text_env.from_string(subject)
        self._body = _html_env.get_template(f"{key.value}.html")

    def render(self, data: Mapping[str, Any]) -> RenderedEmail:
        subject = " ".join(self._subject.render(data).split())
        html = self._body.render(dict(data, subject=subject, tone=self.tone))
        return RenderedEmail(subject=subject, html=html)


class PushTemplate:
    """单个事件的推送模板

    data 中的值必须全部为字符串，这是推送服务的要求。
    """

    def __init__(self, key: EventKey, title: str, body: str,
                 reference: Optional[str] = None):
        self.key = key
        self._title = _text_env.from_string(title)
        self._body = _text_env.from_string(body)
        self.reference = reference

    def render(self, data: Mapping[str, Any]) -> RenderedPush:
        payload = {"type": self.key.value}
        if self.reference:
            payload[f"{self.reference}Id"] = _entity_id(data.get(self.reference))
        return RenderedPush(
            title=self._title.render(data).strip(),
            body=self._body.render(data).strip(),
            data=payload,
        )


def _entity_id(entity: Any) -> str:
    if not entity:
        return ""
    if isinstance(entity, Mapping):
        value = entity.get("id", entity.get("_id"))
    else:
        value = getattr(entity, "id", None)
    return "" if value is None else str(value)


EMAIL_TEMPLATES: Dict[EventKey, EmailTemplate] = {
    key: EmailTemplate(key, subject, tone) for key, (subject, (_, tone)) in _EMAIL_SOURCES.items()
}


def _ticket_push(key: EventKey, title: str, body: str) -> PushTemplate:
    return PushTemplate(key, title, body, reference="ticket")


def _inspection_push(key: EventKey, title: str, body: str) -> PushTemplate:
    return PushTemplate(key, title, body, reference="inspection")


PUSH_TEMPLATES: Dict[EventKey, PushTemplate] = {
    template.key: template for template in (
        _ticket_push(EventKey.TICKET_CREATED, "New Ticket Created",
                     "New ticket: {{ ticket.title or 'New ticket' }}"),
        _ticket_push(EventKey.TICKET_ASSIGNED, "New Ticket Assigned",
                     "You've been assigned: {{ ticket.title or 'New ticket' }}"),
        _ticket_push(EventKey.TICKET_SCHEDULED, "Ticket Scheduled",
                     "Ticket \"{{ ticket.title }}\" scheduled for {{ scheduled_date|short_date }}"),
        _ticket_push(EventKey.TICKET_STATUS_CHANGED, "Ticket Updated",
                     "Ticket \"{{ ticket.title }}\" -> {{ new_status|label|lower }}"),
        _ticket_push(EventKey.TICKET_RESOLVED, "Ticket Resolved",
                     "Ticket \"{{ ticket.title }}\" has been resolved"),
        _ticket_push(EventKey.TICKET_REOPENED, "Ticket Reopened",
                     "Ticket \"{{ ticket.title }}\" was reopened"),
        _ticket_push(EventKey.TICKET_REASSIGNED, "Ticket Reassigned",
                     "Ticket \"{{ ticket.title }}\" is now assigned to {{ assigned_to_name or 'you' }}"),
        _ticket_push(EventKey.TICKET_VERIFIED, "Ticket Verified",
                     "Ticket \"{{ ticket.title }}\" has been verified"),
        _ticket_push(EventKey.TICKET_URGENT, "URGENT Ticket!",
                     "Urgent: {{ ticket.title or 'Immediate attention required' }}"),
        _ticket_push(EventKey.TICKET_PRIORITY_ESCALATED, "Priority Escalated",
                     "Ticket \"{{ ticket.title }}\" raised to {{ new_priority|label|lower }}"),
        PushTemplate(EventKey.BULK_TICKETS_CREATED, "Bulk Tickets Created",
                     "{{ count }} tickets created from inspection at {{ location_name }}"),
        _inspection_push(EventKey.INSPECTION_ASSIGNED, "Inspection Assigned",
                         "New inspection at {{ inspection.location_name or 'a location' }}"),
        _inspection_push(EventKey.INSPECTION_SCHEDULED, "Inspection Scheduled",
                         "Inspection at {{ inspection.location_name }} scheduled for {{ scheduled_date|short_date }}"),
        _inspection_push(EventKey.INSPECTION_COMPLETED, "Inspection Completed",
                         "Inspection at {{ inspection.location_name }} - Score: {{ inspection.total_score }}%"),
        _inspection_push(EventKey.INSPECTION_REASSIGNED, "Inspection Reassigned",
                         "Inspection at {{ inspection.location_name }} has been reassigned"),
        _inspection_push(EventKey.INSPECTION_DELETED, "Inspection Deleted",
                         "Inspection at {{ inspection.location_name }} was deleted"),
        _inspection_push(EventKey.INSPECTION_DEFICIENT, "Deficient Inspection!",
                         "Low score ({{ inspection.total_score }}%) at {{ inspection.location_name }}"),
        _ticket_push(EventKey.TICKET_REMINDER_TODAY, "Work Starts Today",
                     "Ticket \"{{ ticket.title }}\" is scheduled for today"),
        _ticket_push(EventKey.TICKET_REMINDER_TOMORROW, "Ticket Tomorrow",
                     "Ticket \"{{ ticket.title }}\" is scheduled for tomorrow"),
        _ticket_push(EventKey.TICKET_OVERDUE, "Ticket Overdue!",
                     "\"{{ ticket.title }}\" is {{ days_overdue }} day(s) overdue"),
        _inspection_push(EventKey.INSPECTION_REMINDER_TODAY, "Inspection Today",
                         "Inspection at {{ inspection.location_name }} is scheduled for today"),
        _inspection_push(EventKey.INSPECTION_REMINDER_TOMORROW, "Inspection Tomorrow",
                         "Inspection at {{ inspection.location_name }} is scheduled for tomorrow"),
    )
}


TEMPLATE_SETS: Dict[ChannelName, Mapping[EventKey, Any]] = {
    ChannelName.EMAIL: EMAIL_TEMPLATES,
    ChannelName.PUSH: PUSH_TEMPLATES,
}


def check_template_coverage(
    registry: Optional[EventRegistry] = None,
    template_sets: Optional[Mapping[ChannelName, Mapping[EventKey, Any]]] = None
) -> List[Tuple[EventKey, ChannelName]]:
    """返回所有声明了渠道但没有对应模板的 (事件, 渠道) 组合"""
    registry = registry if registry is not None else default_registry
    template_sets = template_sets if template_sets is not None else TEMPLATE_SETS

    missing = []
    for event in registry:
        for channel in event.channels:
            if event.key not in template_sets.get(channel, {}):
                missing.append((event.key, channel))
    return missing
