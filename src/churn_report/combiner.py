"""Reconcile CRM companies and support customers into one record per company name."""

import logging
from typing import Optional, TypeVar

from churn_report.matching import normalize_key
from churn_report.models.combined import CombinedCompany
from churn_report.models.crm import StandardizedCRMCompany
from churn_report.models.support import StandardizedSupportCustomer

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _join_key(name: str) -> str:
    # Names that are nothing but a suffix ("Inc.") keep their raw string as key
    return normalize_key(name) or name


def _index(records: list[tuple[str, T]], side: str) -> dict[str, T]:
    """Key -> record. Later records overwrite earlier ones on key collision."""
    index: dict[str, T] = {}
    names: dict[str, str] = {}
    for name, record in records:
        key = _join_key(name)
        if key in index and names[key] != name:
            logger.warning(
                "%s names %r and %r share key %r; keeping the later record",
                side,
                names[key],
                name,
                key,
            )
        index[key] = record
        names[key] = name
    return index


def combine(
    crm_companies: Optional[list[StandardizedCRMCompany]],
    support_customers: list[StandardizedSupportCustomer],
    crm_source: str,
    support_source: str,
) -> list[CombinedCompany]:
    """
    Merge CRM and support records by normalized company name.

    One row per distinct raw name across both inputs (support names first,
    then CRM names, in first-seen order). Each row carries whichever side(s)
    have a record under the row's normalized key, tagged with its source.
    """
    crm_companies = crm_companies or []
    crm_by_key = _index([(c.company_name, c) for c in crm_companies], "CRM")
    support_by_key = _index([(s.name, s) for s in support_customers], "support")

    names = dict.fromkeys([s.name for s in support_customers] + [c.company_name for c in crm_companies])

    combined: list[CombinedCompany] = []
    for name in names:
        key = _join_key(name)
        combined.append(
            CombinedCompany.build(
                company_name=name,
                crm=crm_by_key.get(key),
                crm_source=crm_source,
                support=support_by_key.get(key),
                support_source=support_source,
            )
        )
    logger.info(
        "Combined %d CRM companies and %d support customers into %d rows",
        len(crm_companies),
        len(support_customers),
        len(combined),
    )
    return combined
