from pydantic import BaseModel


class NoInvitationWeights(BaseModel):
    self_weight: float
    superior_weight: float


class EmployeeInvitationWeights(BaseModel):
    self_weight: float
    invite_superior_weight: float
    superior_weight: float


class WithInvitationWeights(BaseModel):
    employee: EmployeeInvitationWeights


class PerformanceRulePayload(BaseModel):
    """Range and sum checks happen in the service so they surface as VALIDATION_ERROR."""
    no_invitation: NoInvitationWeights
    with_invitation: WithInvitationWeights
    enabled: bool = False


class PerformanceRuleResponse(PerformanceRulePayload):
    id: int
