"""CRM adapters (HubSpot, Salesforce)."""

from churn_report.connectors.crm.hubspot import HubSpotCRM
from churn_report.connectors.crm.salesforce import SalesforceCRM

__all__ = ["HubSpotCRM", "SalesforceCRM"]
