"""用户相关数据模型"""

from enum import Enum
from sqlalchemy import (
    Column, String, Boolean, Enum as SQLEnum, ForeignKey, Table
)
from sqlalchemy.orm import relationship

from .base import Base, BaseModel as DBBaseModel, GUID


class UserRole(str, Enum):
    """用户角色枚举"""
    ADMIN = "admin"
    SUB_ADMIN = "sub_admin"
    SUPERVISOR = "supervisor"
    INSPECTOR = "inspector"
    CLIENT = "client"


# 管理类角色，系统级通知（如逾期告警）发送给这些角色
ADMIN_ROLES = (UserRole.ADMIN, UserRole.SUB_ADMIN)


# 用户与其负责地点的关联表
user_locations = Table(
    "user_locations",
    Base.metadata,
    Column("user_id", GUID(), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("location_id", GUID(), ForeignKey("locations.id", ondelete="CASCADE"), primary_key=True),
)


class User(DBBaseModel):
    """用户模型

    notify_email / notify_push 为空表示用户未设置偏好，按已订阅处理。
    """

    __tablename__ = "users"

    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=True)
    role = Column(SQLEnum(UserRole), nullable=False, default=UserRole.INSPECTOR)

    # 通知偏好
    notify_email = Column(Boolean, nullable=True)
    notify_push = Column(Boolean, nullable=True)

    # 移动端推送令牌
    fcm_token = Column(String(512), nullable=True)

    # 关联关系
    assigned_locations = relationship(
        "Location",
        secondary=user_locations,
        lazy="selectin",
    )
