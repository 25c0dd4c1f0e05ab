from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from kpi_backend.database import Base


class KPITemplate(Base):
    __tablename__ = "kpi_templates"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    period = Column(String, default="monthly")  # monthly, quarterly, yearly
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    items = relationship(
        "KPIItem",
        back_populates="template",
        order_by="KPIItem.sort_order",
        cascade="all, delete-orphan",
    )


class KPIItem(Base):
    __tablename__ = "kpi_items"

    id = Column(Integer, primary_key=True, index=True)
    template_id = Column(Integer, ForeignKey("kpi_templates.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    max_score = Column(Float, default=0)
    sort_order = Column(Integer, default=0)

    template = relationship("KPITemplate", back_populates="items")
