"""工单与检查数据模型"""

from enum import Enum
from sqlalchemy import (
    Column, String, Text, Float, DateTime, Enum as SQLEnum, ForeignKey
)
from sqlalchemy.orm import relationship

from .base import BaseModel as DBBaseModel, GUID


class TicketStatus(str, Enum):
    """工单状态枚举"""
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    VERIFIED = "verified"


class TicketPriority(str, Enum):
    """工单优先级枚举"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class InspectionStatus(str, Enum):
    """检查状态枚举"""
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SUBMITTED = "submitted"


# 仍需处理、需要提醒的状态
ACTIVE_TICKET_STATUSES = (TicketStatus.OPEN, TicketStatus.IN_PROGRESS)
ACTIVE_INSPECTION_STATUSES = (InspectionStatus.PENDING, InspectionStatus.IN_PROGRESS)


class Ticket(DBBaseModel):
    """工单模型"""

    __tablename__ = "tickets"

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    priority = Column(SQLEnum(TicketPriority), nullable=False, default=TicketPriority.MEDIUM)
    status = Column(SQLEnum(TicketStatus), nullable=False, default=TicketStatus.OPEN, index=True)

    location_id = Column(GUID(), ForeignKey("locations.id"), nullable=True)
    assigned_to_id = Column(GUID(), ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # 时间均以UTC存储
    due_date = Column(DateTime(timezone=True), nullable=True, index=True)
    scheduled_date = Column(DateTime(timezone=True), nullable=True, index=True)

    location = relationship("Location")
    assigned_to = relationship("User")


class Inspection(DBBaseModel):
    """检查模型"""

    __tablename__ = "inspections"

    template_id = Column(GUID(), ForeignKey("templates.id"), nullable=False)
    location_id = Column(GUID(), ForeignKey("locations.id"), nullable=False)
    inspector_id = Column(GUID(), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)

    status = Column(SQLEnum(InspectionStatus), nullable=False, default=InspectionStatus.PENDING, index=True)
    scheduled_date = Column(DateTime(timezone=True), nullable=True, index=True)
    total_score = Column(Float, nullable=True)

    template = relationship("Template")
    location = relationship("Location")
    inspector = relationship("User")
