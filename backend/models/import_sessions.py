from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint, func

from db.base import Base


class ImportSessionMarker(Base):
    __tablename__ = "import_sessions"

    id = Column(Integer, primary_key=True, index=True)
    session_id = Column(String, nullable=False, index=True)
    filename = Column(String, nullable=False, default="")
    rows_saved = Column(Integer, nullable=False, default=0)
    saved_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        UniqueConstraint("session_id", name="uq_import_session_id"),
    )
