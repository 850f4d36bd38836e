"""Manual triggers: turn a stored workflow config into a run."""

import logging
from typing import Optional

from churn_report.errors import ConfigurationError, MissingConnectionError
from churn_report.models.workflow import WorkflowParams, WorkflowRun
from churn_report.store.config_store import WorkflowConfigStore
from churn_report.workflow.orchestrator import StepOrchestrator

logger = logging.getLogger(__name__)


def build_params(config_store: WorkflowConfigStore, user_id: str) -> WorkflowParams:
    """
    Load the user's config and connections into WorkflowParams.
    No config -> ConfigurationError. No support connection -> MissingConnectionError.
    A configured CRM without a stored connection is skipped with a warning.
    """
    config = config_store.get_config(user_id)
    if config is None:
        raise ConfigurationError(f"No workflow config for user {user_id}")

    support = config_store.get_connection(user_id, config.support_provider)
    if support is None:
        raise MissingConnectionError(user_id, config.support_provider)

    crm_provider: Optional[str] = None
    crm_metadata = None
    if config.crm_provider and config.crm_provider != "none":
        crm = config_store.get_connection(user_id, config.crm_provider)
        if crm is None:
            logger.warning("User %s has no %s connection; running without CRM data", user_id, config.crm_provider)
        else:
            crm_provider, crm_metadata = config.crm_provider, crm.metadata

    return WorkflowParams(
        user_id=user_id,
        crm_provider=crm_provider,
        crm_metadata=crm_metadata,
        support_provider=config.support_provider,
        support_metadata=support.metadata,
        report_destination=config.report_destination,
        destination_config=config.destination_config,
    )


def trigger_run(
    orchestrator: StepOrchestrator,
    config_store: WorkflowConfigStore,
    user_id: str,
    trigger_id: Optional[str] = None,
) -> WorkflowRun:
    """Build params for the user and start a fresh run. Fails fast before any run is created."""
    params = build_params(config_store, user_id)
    return orchestrator.start(params, trigger_id)
