# models/rules.py

from sqlalchemy import Boolean, Column, DateTime, Integer, String, JSON, func
from db.base import Base


class RuleRecord(Base):
    __tablename__ = "rules"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    conditions = Column(JSON, nullable=False, default=list)   # ordered [{type, column, operator, value, value2}]
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())
