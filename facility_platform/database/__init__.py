"""数据库访问层"""

from .connection import DatabaseManager, db_manager
from .repositories import (
    BaseRepository,
    UserRepository,
    LocationRepository,
    TemplateRepository,
    TicketRepository,
    InspectionRepository,
)

__all__ = [
    "DatabaseManager",
    "db_manager",
    "BaseRepository",
    "UserRepository",
    "LocationRepository",
    "TemplateRepository",
    "TicketRepository",
    "InspectionRepository",
]
