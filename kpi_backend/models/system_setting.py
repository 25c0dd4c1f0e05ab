from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func
from kpi_backend.database import Base


class SystemSetting(Base):
    __tablename__ = "system_settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String, unique=True, index=True, nullable=False)
    value = Column(Text, nullable=False, default="")
    type = Column(String, default="string")  # string, boolean, json
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
