"""
通知接收人解析

根据角色、地点和用户ID从数据库查询接收人，并把用户记录转换为
携带通知偏好的 Recipient。不做缓存，每次调用都重新查询。
"""

import logging
from typing import Any, Callable, Iterable, List, Optional

from facility_platform.database.repositories import UserRepository
from shared.models.base import to_uuid
from shared.models.user import ADMIN_ROLES, User

from .types import Recipient

logger = logging.getLogger(__name__)


def _mask_token(token: Optional[str]) -> str:
    if not token:
        return "NONE"
    return f"{token[:20]}..."


def format_recipient(user: User) -> Recipient:
    """把用户记录转换为接收人

    偏好字段原样传递：None 表示未设置，下游按已订阅处理。
    """
    recipient = Recipient(
        user_id=str(user.id),
        email=user.email,
        name=user.name,
        role=user.role.value if hasattr(user.role, "value") else user.role,
        email_opt_in=user.notify_email,
        push_opt_in=user.notify_push,
        push_token=user.fcm_token or None,
    )
    logger.debug(
        f"加载接收人: {recipient.name} ({recipient.role}) | email: {recipient.email} | "
        f"token: {_mask_token(recipient.push_token)}"
    )
    return recipient


def merge_recipients(*groups: Optional[Iterable[Recipient]]) -> List[Recipient]:
    """合并多组接收人，按邮箱去重

    按调用方给出的分组顺序遍历，同一邮箱保留第一次出现的记录；
    没有邮箱的条目被丢弃。
    """
    seen = set()
    merged: List[Recipient] = []
    for group in groups:
        for recipient in group or []:
            if recipient is None or not recipient.email:
                continue
            if recipient.email in seen:
                continue
            seen.add(recipient.email)
            merged.append(recipient)
    return merged


class RecipientResolver:
    """接收人解析器"""

    def __init__(self, session_factory: Callable[[], Any]):
        # session_factory 返回异步会话上下文管理器，如 db_manager.get_async_session
        self.session_factory = session_factory

    async def admin_recipients(self) -> List[Recipient]:
        """获取所有管理员和副管理员"""
        async with self.session_factory() as session:
            users = await UserRepository(session).get_by_roles(ADMIN_ROLES)
            return [format_recipient(user) for user in users]

    async def user_recipient(self, user_id: Any) -> Optional[Recipient]:
        """按用户ID获取单个接收人，不存在时返回 None"""
        uid = to_uuid(user_id)
        if uid is None:
            return None

        async with self.session_factory() as session:
            user = await UserRepository(session).get_by_id(uid)
            if not user:
                return None
            return format_recipient(user)

    async def client_recipients_for_location(self, location_id: Any) -> List[Recipient]:
        """获取分配到指定地点的客户"""
        lid = to_uuid(location_id)
        if lid is None:
            return []

        async with self.session_factory() as session:
            users = await UserRepository(session).get_clients_for_location(lid)
            return [format_recipient(user) for user in users]

    @staticmethod
    def merge_recipients(*groups: Optional[Iterable[Recipient]]) -> List[Recipient]:
        """合并多组接收人，参见模块级 merge_recipients"""
        return merge_recipients(*groups)
