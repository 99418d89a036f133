"""地点与检查模板数据模型"""

from sqlalchemy import Column, String, ForeignKey
from sqlalchemy.orm import relationship

from .base import BaseModel as DBBaseModel, GUID


class Location(DBBaseModel):
    """地点模型（客户、楼宇、楼层、区域等层级）"""

    __tablename__ = "locations"

    name = Column(String(255), nullable=False)
    type = Column(String(32), nullable=False, default="building")
    parent_id = Column(GUID(), ForeignKey("locations.id"), nullable=True)
    address = Column(String(500), nullable=True)

    parent = relationship("Location", remote_side="Location.id")


class Template(DBBaseModel):
    """检查模板模型"""

    __tablename__ = "templates"

    name = Column(String(255), nullable=False)
