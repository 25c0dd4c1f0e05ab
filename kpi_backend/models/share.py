from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from kpi_backend.database import Base
import enum


class ShareStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class EvaluationShare(Base):
    __tablename__ = "evaluation_shares"

    id = Column(Integer, primary_key=True, index=True)
    evaluation_id = Column(Integer, ForeignKey("kpi_evaluations.id", ondelete="CASCADE"), nullable=False, index=True)
    shared_to_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    shared_by_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    status = Column(String, default=ShareStatus.PENDING.value)
    message = Column(Text, default="")
    deadline = Column(DateTime, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    evaluation = relationship("KPIEvaluation", back_populates="shares")
    shared_to = relationship("Employee", foreign_keys=[shared_to_id])
    shared_by = relationship("Employee", foreign_keys=[shared_by_id])
    scores = relationship("ShareScore", back_populates="share", order_by="ShareScore.item_id", cascade="all, delete-orphan")


class ShareScore(Base):
    __tablename__ = "share_scores"

    id = Column(Integer, primary_key=True, index=True)
    share_id = Column(Integer, ForeignKey("evaluation_shares.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("kpi_items.id"), nullable=False)
    score = Column(Float, nullable=True)
    comment = Column(Text, default="")

    share = relationship("EvaluationShare", back_populates="scores")
    item = relationship("KPIItem")
