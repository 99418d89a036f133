"""数据模型包"""

from .base import Base, BaseModel
from .user import User, UserRole, ADMIN_ROLES, user_locations
from .location import Location, Template
from .ticket import (
    Ticket, Inspection, TicketStatus, TicketPriority, InspectionStatus,
    ACTIVE_TICKET_STATUSES, ACTIVE_INSPECTION_STATUSES
)

__all__ = [
    "Base",
    "BaseModel",
    "User",
    "UserRole",
    "ADMIN_ROLES",
    "user_locations",
    "Location",
    "Template",
    "Ticket",
    "Inspection",
    "TicketStatus",
    "TicketPriority",
    "InspectionStatus",
    "ACTIVE_TICKET_STATUSES",
    "ACTIVE_INSPECTION_STATUSES",
]
