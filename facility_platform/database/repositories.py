"""数据访问层仓库类"""

import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from shared.models.base import as_utc
from shared.models.location import Location, Template
from shared.models.ticket import (
    ACTIVE_INSPECTION_STATUSES,
    ACTIVE_TICKET_STATUSES,
    Inspection,
    InspectionStatus,
    Ticket,
    TicketStatus,
)
from shared.models.user import User, UserRole, user_locations


_DATE_FIELDS = ("due_date", "scheduled_date")


def _utc_dates(data: Dict[str, Any]) -> Dict[str, Any]:
    """日期字段统一转换为UTC后再写入"""
    return {
        key: as_utc(value) if key in _DATE_FIELDS and isinstance(value, datetime) else value
        for key, value in data.items()
    }


class BaseRepository:
    """基础仓库类"""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def commit(self):
        """提交事务"""
        await self.session.commit()

    async def rollback(self):
        """回滚事务"""
        await self.session.rollback()

    async def _add(self, instance):
        """添加实体并刷新，但不提交"""
        self.session.add(instance)
        await self.session.flush()
        return instance


class UserRepository(BaseRepository):
    """用户仓库类"""

    async def create(self, user_data: Dict[str, Any]) -> User:
        """创建用户"""
        data = dict(user_data)
        locations = data.pop("assigned_locations", None) or []
        user = User(**data)
        user.assigned_locations = list(locations)
        return await self._add(user)

    async def get_by_id(self, user_id: uuid.UUID) -> Optional[User]:
        """根据ID获取用户"""
        stmt = select(User).where(User.id == user_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        """根据邮箱获取用户"""
        stmt = select(User).where(User.email == email)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_roles(self, roles: Iterable[UserRole]) -> List[User]:
        """获取指定角色的全部用户，按创建时间排序"""
        stmt = (
            select(User)
            .where(User.role.in_(list(roles)))
            .order_by(User.created_at, User.email)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_clients_for_location(self, location_id: uuid.UUID) -> List[User]:
        """获取被分配到指定地点的客户用户"""
        stmt = (
            select(User)
            .join(user_locations, user_locations.c.user_id == User.id)
            .where(
                User.role == UserRole.CLIENT,
                user_locations.c.location_id == location_id,
            )
            .order_by(User.created_at, User.email)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().unique().all())

    async def clear_fcm_token(self, user_id: uuid.UUID) -> bool:
        """清除用户的推送令牌（幂等）"""
        stmt = update(User).where(User.id == user_id).values(fcm_token=None)
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def update_fcm_token(self, user_id: uuid.UUID, token: Optional[str]) -> bool:
        """更新用户的推送令牌"""
        stmt = update(User).where(User.id == user_id).values(fcm_token=token)
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def update_preferences(
        self,
        user_id: uuid.UUID,
        notify_email: Optional[bool] = None,
        notify_push: Optional[bool] = None
    ) -> Optional[User]:
        """更新用户通知偏好，None 表示不修改"""
        user = await self.get_by_id(user_id)
        if not user:
            return None

        if notify_email is not None:
            user.notify_email = notify_email
        if notify_push is not None:
            user.notify_push = notify_push

        await self.session.flush()
        return user


class LocationRepository(BaseRepository):
    """地点仓库类"""

    async def create(self, location_data: Dict[str, Any]) -> Location:
        """创建地点"""
        return await self._add(Location(**location_data))

    async def get_by_id(self, location_id: uuid.UUID) -> Optional[Location]:
        """根据ID获取地点"""
        stmt = select(Location).where(Location.id == location_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()


class TemplateRepository(BaseRepository):
    """检查模板仓库类"""

    async def create(self, template_data: Dict[str, Any]) -> Template:
        """创建检查模板"""
        return await self._add(Template(**template_data))


class TicketRepository(BaseRepository):
    """工单仓库类"""

    async def create(self, ticket_data: Dict[str, Any]) -> Ticket:
        """创建工单"""
        return await self._add(Ticket(**_utc_dates(ticket_data)))

    async def get_by_id(self, ticket_id: uuid.UUID) -> Optional[Ticket]:
        """根据ID获取工单"""
        stmt = (
            select(Ticket)
            .options(selectinload(Ticket.location))
            .where(Ticket.id == ticket_id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_scheduled_between(
        self,
        start: datetime,
        end: datetime,
        statuses: Iterable[TicketStatus] = ACTIVE_TICKET_STATUSES
    ) -> List[Ticket]:
        """查找计划日期落在 [start, end) 内且已分配负责人的工单"""
        stmt = (
            select(Ticket)
            .options(selectinload(Ticket.location))
            .where(
                Ticket.scheduled_date >= as_utc(start),
                Ticket.scheduled_date < as_utc(end),
                Ticket.status.in_(list(statuses)),
                Ticket.assigned_to_id.is_not(None),
            )
            .order_by(Ticket.scheduled_date)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def find_overdue(
        self,
        before: datetime,
        statuses: Iterable[TicketStatus] = ACTIVE_TICKET_STATUSES
    ) -> List[Ticket]:
        """查找截止日期早于 before 且仍未处理完成的工单"""
        stmt = (
            select(Ticket)
            .options(selectinload(Ticket.location))
            .where(
                Ticket.due_date < as_utc(before),
                Ticket.status.in_(list(statuses)),
            )
            .order_by(Ticket.due_date)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class InspectionRepository(BaseRepository):
    """检查仓库类"""

    async def create(self, inspection_data: Dict[str, Any]) -> Inspection:
        """创建检查"""
        return await self._add(Inspection(**_utc_dates(inspection_data)))

    async def find_scheduled_between(
        self,
        start: datetime,
        end: datetime,
        statuses: Iterable[InspectionStatus] = ACTIVE_INSPECTION_STATUSES
    ) -> List[Inspection]:
        """查找计划日期落在 [start, end) 内的检查"""
        stmt = (
            select(Inspection)
            .options(
                selectinload(Inspection.template),
                selectinload(Inspection.location),
            )
            .where(
                Inspection.scheduled_date >= as_utc(start),
                Inspection.scheduled_date < as_utc(end),
                Inspection.status.in_(list(statuses)),
            )
            .order_by(Inspection.scheduled_date)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())
