"""Support-platform adapters (Zendesk, Intercom, Freshdesk)."""

from churn_report.connectors.support.freshdesk import FreshdeskSupport
from churn_report.connectors.support.intercom import IntercomSupport
from churn_report.connectors.support.zendesk import ZendeskSupport

__all__ = ["FreshdeskSupport", "IntercomSupport", "ZendeskSupport"]
