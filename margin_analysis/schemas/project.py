from pydantic import BaseModel, Field, field_validator
from typing import Optional, List, Literal
from datetime import datetime

Currency = Literal["USD", "AUD", "EUR", "GBP", "SGD", "NZD"]


# ---- Inputs ----
class ProjectResourceCreate(BaseModel):
    resource_type: str
    baseline_hours: float = Field(0.0, ge=0)
    final_hours: float = Field(0.0, ge=0)


class ThirdPartyResourceCreate(BaseModel):
    resource_name: str = Field(..., min_length=1)
    cost_usd: float = Field(..., ge=0)
    hours: float = Field(0.0, ge=0)


class ProjectCreate(BaseModel):
    """Schema for creating or replacing a project - all inputs are required together"""
    client_id: int
    currency_used: Currency
    contract_number: Optional[str] = None
    oracle_id: Optional[str] = None
    project_name: str = Field(..., min_length=1, max_length=255)
    local_service_value: float = Field(..., ge=0)
    baseline_hours: Optional[float] = Field(None, ge=0)
    total_baseline_hours: float = Field(..., ge=0)
    non_bill_hours: Optional[float] = Field(None, ge=0)  # derived when omitted
    resources: List[ProjectResourceCreate]
    third_party_resources: List[ThirdPartyResourceCreate] = []

    @field_validator("project_name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("project_name cannot be blank")
        return v


class ProjectUpdate(ProjectCreate):
    """Schema for updating a project (full replacement of inputs and line items)"""
    pass


# ---- Outputs ----
class ProjectResourceResponse(BaseModel):
    id: int
    project_id: int
    resource_type: str
    hours: float
    baseline_hours: float
    final_hours: float
    cost_rate_usd: Optional[float] = None    # hidden from non-admin users
    total_cost_usd: Optional[float] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ThirdPartyResourceResponse(BaseModel):
    id: int
    project_id: int
    resource_name: str
    cost_usd: float
    hours: float
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class HoursValidationResponse(BaseModel):
    is_valid: bool
    total_baseline_hours: float
    sum_of_resource_hours: float
    non_bill_hours: float
    calculated_total: float
    difference: float


class MetricsVariance(BaseModel):
    """Final minus baseline, per metric"""
    total_costs_usd: float
    margin_percent: float
    net_revenue_usd: float
    ebita_usd: float
    ps_ratio: float


class ProjectListResponse(BaseModel):
    """Schema for listing projects with both metric snapshots"""
    id: int
    client_id: int
    client_name: Optional[str] = None
    currency_used: str
    contract_number: Optional[str] = None
    oracle_id: Optional[str] = None
    project_name: str
    local_service_value: float
    service_value_usd: Optional[float] = None
    baseline_hours: Optional[float] = None
    total_baseline_hours: float
    non_bill_hours: float

    total_costs_usd: Optional[float] = None
    margin_percent: Optional[float] = None
    net_revenue_usd: Optional[float] = None
    ebita_usd: Optional[float] = None
    ps_ratio: Optional[float] = None
    margin_status: Optional[str] = None
    ps_ratio_status: Optional[str] = None

    baseline_total_costs_usd: Optional[float] = None
    baseline_margin_percent: Optional[float] = None
    baseline_net_revenue_usd: Optional[float] = None
    baseline_ebita_usd: Optional[float] = None
    baseline_ps_ratio: Optional[float] = None
    baseline_margin_status: Optional[str] = None
    baseline_ps_ratio_status: Optional[str] = None

    hours_valid: Optional[bool] = None
    hours_difference: Optional[float] = None

    created_by: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectResponse(ProjectListResponse):
    """Schema for a single project with its line items"""
    resources: List[ProjectResourceResponse] = []
    third_party_resources: List[ThirdPartyResourceResponse] = []
    variance: Optional[MetricsVariance] = None


class ProjectSaveResponse(ProjectResponse):
    """Returned by create/update: includes the advisory hours check"""
    hours_validation: HoursValidationResponse


class DashboardStats(BaseModel):
    total_projects: int = 0
    avg_margin: Optional[float] = None
    avg_ps_ratio: Optional[float] = None
    projects_on_track_margin: int = 0
    projects_below_target_margin: int = 0
    projects_on_track_ps: int = 0
    projects_below_target_ps: int = 0
    total_service_value: Optional[float] = None
    total_service_value_usd: Optional[float] = None
    total_costs: Optional[float] = None
    total_net_revenue: Optional[float] = None
