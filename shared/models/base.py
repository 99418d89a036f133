"""基础数据模型"""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional
from sqlalchemy import Column, DateTime, func, TypeDecorator, CHAR
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import DeclarativeBase


def to_uuid(value: Any) -> Optional[uuid.UUID]:
    """把字符串/UUID统一为UUID，非法值返回None"""
    if value is None or value == "":
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """将数据库读出的时间统一为UTC时区时间

    SQLite 不保存时区信息，读出的是naive时间；写入时一律使用UTC。
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class GUID(TypeDecorator):
    """UUID列：PostgreSQL 使用原生类型，其他数据库存为36位字符串"""

    impl = CHAR
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(UUID(as_uuid=True))
        return dialect.type_descriptor(CHAR(36))

    def process_bind_param(self, value, dialect):
        uid = to_uuid(value)
        if uid is None:
            return None
        return uid if dialect.name == "postgresql" else str(uid)

    def process_result_value(self, value, dialect):
        return to_uuid(value)


class Base(DeclarativeBase):
    """SQLAlchemy基础模型"""
    pass


class BaseModel(Base):
    """基础数据模型，包含通用字段"""

    __abstract__ = True

    id = Column(GUID(), primary_key=True, default=uuid.uuid4, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )
