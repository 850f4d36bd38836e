"""Reconciled company record: CRM side and support side under one name."""

from typing import Optional

from pydantic import Field, model_validator

from churn_report.models.crm import StandardizedCRMCompany, StandardizedModel
from churn_report.models.support import StandardizedSupportCustomer


class SourcedCRMCompany(StandardizedCRMCompany):
    """CRM company tagged with the provider it came from."""

    crm_data_source: str = Field(..., alias="CRMDataSource")


class SourcedSupportCustomer(StandardizedSupportCustomer):
    """Support customer tagged with the provider it came from."""

    support_data_source: str = Field(..., alias="supportDataSource")


class CombinedCompany(StandardizedModel):
    """One reconciled company; at least one side is always present."""

    company_name: str = Field(..., min_length=1)
    crm_data: Optional[SourcedCRMCompany] = Field(default=None, alias="CRMData")
    support_data: Optional[SourcedSupportCustomer] = Field(default=None, alias="supportData")

    @model_validator(mode="after")
    def _has_a_side(self) -> "CombinedCompany":
        if self.crm_data is None and self.support_data is None:
            raise ValueError(f"CombinedCompany {self.company_name!r} has neither CRM nor support data")
        return self

    @classmethod
    def build(
        cls,
        company_name: str,
        crm: Optional[StandardizedCRMCompany],
        crm_source: str,
        support: Optional[StandardizedSupportCustomer],
        support_source: str,
    ) -> "CombinedCompany":
        """Tag whichever sides matched with their originating provider."""
        crm_data = (
            SourcedCRMCompany.model_validate({**crm.model_dump(), "crm_data_source": crm_source})
            if crm is not None
            else None
        )
        support_data = (
            SourcedSupportCustomer.model_validate(
                {**support.model_dump(), "support_data_source": support_source}
            )
            if support is not None
            else None
        )
        return cls(company_name=company_name, crm_data=crm_data, support_data=support_data)
