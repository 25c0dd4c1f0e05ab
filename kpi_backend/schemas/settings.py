from pydantic import BaseModel, Field


class SystemSettings(BaseModel):
    allow_registration: bool


class StageDays(BaseModel):
    self_eval: int = Field(..., ge=0)
    manager_eval: int = Field(..., ge=0)
    hr_review: int = Field(..., ge=0)
    final_confirm: int = Field(..., ge=0)


class TimeThresholdDays(BaseModel):
    standard: int = Field(..., ge=0)
    compressed: int = Field(..., ge=0)
    emergency: int = Field(..., ge=0)


class DeadlineRules(BaseModel):
    standard_days: StageDays
    compressed_days: StageDays
    minimum_days: StageDays
    time_threshold: TimeThresholdDays
    auto_process_overdue: bool = False
