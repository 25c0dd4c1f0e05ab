from sqlalchemy import Column, Integer, Float, Boolean, DateTime
from sqlalchemy.sql import func
from kpi_backend.database import Base


class PerformanceRule(Base):
    """
    Singleton weighting rule for automatic HR scores.
    Weights are percentages; each set sums to 100.
    """
    __tablename__ = "performance_rules"

    id = Column(Integer, primary_key=True, index=True)

    # No completed peer invitations
    no_invitation_self_weight = Column(Float, nullable=False, default=10)
    no_invitation_superior_weight = Column(Float, nullable=False, default=90)

    # At least one completed peer invitation
    employee_self_weight = Column(Float, nullable=False, default=10)
    employee_invite_weight = Column(Float, nullable=False, default=30)
    employee_superior_weight = Column(Float, nullable=False, default=60)

    enabled = Column(Boolean, default=False, nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    @classmethod
    def default(cls) -> "PerformanceRule":
        return cls(
            no_invitation_self_weight=10,
            no_invitation_superior_weight=90,
            employee_self_weight=10,
            employee_invite_weight=30,
            employee_superior_weight=60,
            enabled=False,
        )
