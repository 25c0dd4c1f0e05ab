from sqlalchemy import Column, Integer, String, Float, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from kpi_backend.database import Base
import enum


class InvitationStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    DECLINED = "declined"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


class EvaluationInvitation(Base):
    __tablename__ = "evaluation_invitations"

    id = Column(Integer, primary_key=True, index=True)
    evaluation_id = Column(Integer, ForeignKey("kpi_evaluations.id", ondelete="CASCADE"), nullable=False, index=True)
    inviter_id = Column(Integer, ForeignKey("employees.id"), nullable=False)
    invitee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    status = Column(String, default=InvitationStatus.PENDING.value, index=True)
    message = Column(Text, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    evaluation = relationship("KPIEvaluation", back_populates="invitations")
    inviter = relationship("Employee", foreign_keys=[inviter_id])
    invitee = relationship("Employee", foreign_keys=[invitee_id])
    scores = relationship("InvitedScore", back_populates="invitation", cascade="all, delete-orphan")


class InvitedScore(Base):
    __tablename__ = "invited_scores"

    id = Column(Integer, primary_key=True, index=True)
    invitation_id = Column(Integer, ForeignKey("evaluation_invitations.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("kpi_items.id"), nullable=False)
    score = Column(Float, nullable=True)
    comment = Column(Text, default="")
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    invitation = relationship("EvaluationInvitation", back_populates="scores")
    item = relationship("KPIItem")
