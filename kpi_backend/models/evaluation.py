from sqlalchemy import Column, Integer, String, Float, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from kpi_backend.database import Base
import enum


class EvaluationStatus(str, enum.Enum):
    PENDING = "pending"
    SELF_EVALUATED = "self_evaluated"
    MANAGER_EVALUATED = "manager_evaluated"
    PENDING_CONFIRM = "pending_confirm"
    COMPLETED = "completed"


class KPIEvaluation(Base):
    __tablename__ = "kpi_evaluations"

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(Integer, ForeignKey("employees.id"), nullable=False, index=True)
    template_id = Column(Integer, ForeignKey("kpi_templates.id"), nullable=False, index=True)

    period = Column(String, nullable=False)  # monthly, quarterly, yearly
    year = Column(Integer, nullable=False)
    month = Column(Integer, nullable=True)
    quarter = Column(Integer, nullable=True)

    status = Column(String, default=EvaluationStatus.PENDING.value, index=True)
    total_score = Column(Float, default=0)

    has_objection = Column(Boolean, default=False, nullable=False)
    objection_reason = Column(Text, default="")
    final_comment = Column(Text, default="")
    # Set once HR resolves an objection; later completion keeps the adjusted total
    total_score_locked = Column(Boolean, default=False, nullable=False)

    has_shares = Column(Boolean, default=False, nullable=False)
    share_count = Column(Integer, default=0)

    self_eval_deadline = Column(DateTime, nullable=True)
    manager_eval_deadline = Column(DateTime, nullable=True)
    hr_review_deadline = Column(DateTime, nullable=True)
    final_confirm_deadline = Column(DateTime, nullable=True)
    time_mode = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    employee = relationship("Employee")
    template = relationship("KPITemplate")
    scores = relationship("KPIScore", back_populates="evaluation", cascade="all, delete-orphan")
    invitations = relationship("EvaluationInvitation", back_populates="evaluation", cascade="all, delete-orphan")
    shares = relationship("EvaluationShare", back_populates="evaluation", cascade="all, delete-orphan")
    comments = relationship("EvaluationComment", back_populates="evaluation", cascade="all, delete-orphan")


class KPIScore(Base):
    __tablename__ = "kpi_scores"

    id = Column(Integer, primary_key=True, index=True)
    evaluation_id = Column(Integer, ForeignKey("kpi_evaluations.id", ondelete="CASCADE"), nullable=False, index=True)
    item_id = Column(Integer, ForeignKey("kpi_items.id"), nullable=False, index=True)

    self_score = Column(Float, nullable=True)
    self_comment = Column(Text, default="")
    manager_score = Column(Float, nullable=True)
    manager_comment = Column(Text, default="")
    hr_score = Column(Float, nullable=True)
    hr_comment = Column(Text, default="")
    final_score = Column(Float, nullable=True)
    final_comment = Column(Text, default="")

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    evaluation = relationship("KPIEvaluation", back_populates="scores")
    item = relationship("KPIItem")
