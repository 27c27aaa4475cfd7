# models/colors.py

from sqlalchemy import Boolean, Column, DateTime, Integer, String, JSON, func
from db.base import Base


class ColorRecord(Base):
    __tablename__ = "colors"

    id = Column(Integer, primary_key=True, index=True)
    message_id = Column(String, index=True)           # business key
    parent_message_id = Column(String, index=True, nullable=True)
    is_parent = Column(Boolean, nullable=False, default=False)
    children_count = Column(Integer, nullable=False, default=0)
    sector = Column(String, index=True)               # asset class
    processing_type = Column(String, index=True, default="automated")  # automated / manual
    session_id = Column(String, index=True, nullable=True)  # grid session that saved a manual color
    source = Column(String, index=True)
    bias = Column(String, index=True)
    date = Column(String, index=True)
    data = Column(JSON)                               # full color payload
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
