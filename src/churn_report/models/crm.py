"""Standardized CRM company model shared by all CRM providers."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class StandardizedModel(BaseModel):
    """Immutable base: snake_case attributes, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class OpenOpportunity(StandardizedModel):
    """Open deal/opportunity attached to a CRM company."""

    id: str
    name: Optional[str] = None
    amount: Optional[float] = None
    stage: Optional[str] = None
    probability: Optional[float] = None
    age_days: Optional[int] = None
    close_date: Optional[str] = None


class OpenCase(StandardizedModel):
    """Open support case tracked inside the CRM (Salesforce)."""

    id: str
    subject: str = ""
    priority: str = ""
    status: str = ""
    age_hours: int = 0
    is_escalated: Optional[bool] = None


class OpenTask(StandardizedModel):
    """Open task tracked inside the CRM (Salesforce)."""

    id: str
    subject: Optional[str] = None
    priority: str = ""
    status: Optional[str] = None
    due_date: Optional[str] = None
    age_hours: int = 0


class StandardizedCRMCompany(StandardizedModel):
    """Canonical CRM company record produced by every CRM adapter."""

    company_name: str = Field(..., min_length=1)
    company_id: str = Field(..., min_length=1, description="Provider-scoped identifier")

    owner_id: Optional[str] = None
    owner_assigned_date: Optional[str] = None

    lifecycle_stage: Optional[str] = None
    total_revenue: Optional[float] = None
    last_activity_date: Optional[str] = None

    number_of_open_deals: Optional[int] = Field(default=None, ge=0)
    recent_deal_amount: Optional[float] = None
    recent_deal_close_date: Optional[str] = None
    open_opportunities: Optional[list[OpenOpportunity]] = None

    open_cases: Optional[list[OpenCase]] = None
    open_tasks: Optional[list[OpenTask]] = None

    csm_sentiment: Optional[str] = None
    prospect_rating: Optional[str] = None

    platform_specific_data: dict[str, Any] = Field(default_factory=dict)
