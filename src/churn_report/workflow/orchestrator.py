"""
Durable step orchestrator for the churn report pipeline.

Every step attempt is appended to the run's step journal. Before a step
runs, the journal is consulted: a completed entry's stored result is reused
and the step body is not executed again, so delivery and logging happen at
most once per run even across process restarts.
"""

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx
from pydantic import TypeAdapter
from tenacity import (
    RetryCallState,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from churn_report.combiner import combine
from churn_report.config import Settings
from churn_report.connectors.registry import fetch_crm, fetch_support
from churn_report.errors import ConfigurationError, MalformedReportError
from churn_report.models.combined import CombinedCompany
from churn_report.models.crm import StandardizedCRMCompany
from churn_report.models.support import StandardizedSupportCustomer
from churn_report.models.workflow import (
    RunStatus,
    StepStatus,
    WorkflowParams,
    WorkflowRun,
    make_run_id,
)
from churn_report.notify import deliver
from churn_report.report import generate_report
from churn_report.store.config_store import WorkflowConfigStore
from churn_report.store.report_store import ReportStore
from churn_report.store.run_store import RunStore
from churn_report.workflow.schedule import advance_schedule

logger = logging.getLogger(__name__)

FETCH_CRM = "fetch-crm"
FETCH_SUPPORT = "fetch-support"
COMBINE = "combine"
GENERATE_REPORT = "generate-report"
DELIVER = "deliver"
LOG_COMPLETION = "log-completion"

STEPS = (FETCH_CRM, FETCH_SUPPORT, COMBINE, GENERATE_REPORT, DELIVER, LOG_COMPLETION)

# How each step's result is stored in and reloaded from the journal
STEP_RESULTS: dict[str, TypeAdapter] = {
    FETCH_CRM: TypeAdapter(Optional[list[StandardizedCRMCompany]]),
    FETCH_SUPPORT: TypeAdapter(list[StandardizedSupportCustomer]),
    COMBINE: TypeAdapter(list[CombinedCompany]),
    GENERATE_REPORT: TypeAdapter(str),
    DELIVER: TypeAdapter(type(None)),
    LOG_COMPLETION: TypeAdapter(Optional[str]),
}


@dataclass
class Collaborators:
    """External collaborators the pipeline steps delegate to."""

    fetch_crm: Callable[[str, dict[str, Any]], list[StandardizedCRMCompany]]
    fetch_support: Callable[[str, dict[str, Any]], list[StandardizedSupportCustomer]]
    generate_report: Callable[[list[CombinedCompany]], str]
    deliver: Callable[[str, str, str], None]
    # (run_id, user_id, text) -> report id
    persist_report_record: Callable[[str, str, str], Optional[str]]
    # (user_id, completed_at)
    advance_next_run: Callable[[str, datetime], Any]

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        config_store: WorkflowConfigStore,
        report_store: ReportStore,
        *,
        client: Optional[httpx.Client] = None,
    ) -> "Collaborators":
        """Wire the real adapters, generator, notifiers and stores."""
        http = dict(client=client, timeout=settings.http_timeout, max_pages=settings.max_pages)
        return cls(
            fetch_crm=lambda provider, creds: fetch_crm(provider, creds, **http),
            fetch_support=lambda provider, creds: fetch_support(provider, creds, **http),
            generate_report=lambda companies: generate_report(companies, settings),
            deliver=lambda dest, config, text: deliver(dest, config, text, settings, client=client),
            persist_report_record=lambda run_id, user_id, text: report_store.add(run_id, user_id, text).id,
            advance_next_run=lambda user_id, at: advance_schedule(config_store, user_id, at),
        )


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def is_retryable(exc: BaseException) -> bool:
    """Step errors are retried, except configuration errors and process-level interrupts."""
    return isinstance(exc, Exception) and not isinstance(exc, ConfigurationError)


class StepOrchestrator:
    """
    Runs the fixed six-step pipeline for one run id at a time.
    Steps run sequentially; distinct runs may execute concurrently on
    separate orchestrator calls since all shared state lives in the stores.
    """

    def __init__(
        self,
        run_store: RunStore,
        collaborators: Collaborators,
        settings: Optional[Settings] = None,
        *,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.run_store = run_store
        self.collaborators = collaborators
        self.settings = settings or Settings()
        self._sleep = sleep
        self._clock = clock

    def start(self, params: WorkflowParams, trigger_id: Optional[str] = None) -> WorkflowRun:
        """Create a new run instance for params and execute it."""
        run_id = make_run_id(params, trigger_id)
        self.run_store.create_run(run_id, params)
        logger.info("Created run %s for user %s", run_id, params.user_id)
        return self.execute(run_id)

    def resume(self, run_id: str) -> WorkflowRun:
        """Continue an interrupted run from its first step without a completed journal entry."""
        return self.execute(run_id)

    def execute(self, run_id: str) -> WorkflowRun:
        """
        Drive the run to a terminal state. A run that is already completed or
        failed is returned as recorded; nothing is executed.
        """
        run = self.run_store.require_run(run_id)
        if run.status.is_terminal:
            logger.info("Run %s already %s; nothing to do", run_id, run.status.value)
            return run

        self.run_store.set_status(run_id, RunStatus.RUNNING)
        results: dict[str, Any] = {}
        for step, body in self._steps(run_id, run.params, results):
            try:
                results[step] = self._run_step(run_id, step, body)
            except Exception as e:
                logger.error("Run %s failed at %s: %s", run_id, step, _describe(e))
                self.run_store.set_status(run_id, RunStatus.FAILED, current_step=step, error=_describe(e))
                return self.run_store.require_run(run_id)

        self.run_store.set_status(run_id, RunStatus.COMPLETED, current_step=LOG_COMPLETION)
        logger.info("Run %s completed", run_id)
        return self.run_store.require_run(run_id)

    def _credentials(self, provider: str, metadata: Optional[dict[str, Any]]) -> dict[str, Any]:
        """Stored connection metadata plus the app's client id/secret, when configured."""
        app = {k: v for k, v in self.settings.provider_client(provider).items() if v}
        return {**(metadata or {}), **app}

    def _steps(
        self, run_id: str, params: WorkflowParams, results: dict[str, Any]
    ) -> list[tuple[str, Callable[[], Any]]]:
        c = self.collaborators
        crm_source = params.crm_provider if params.has_crm else "none"

        def fetch_crm_step() -> Optional[list[StandardizedCRMCompany]]:
            if not params.has_crm:
                logger.info("Run %s: no CRM configured, skipping CRM fetch", run_id)
                return None
            return c.fetch_crm(params.crm_provider, self._credentials(params.crm_provider, params.crm_metadata))

        def fetch_support_step() -> list[StandardizedSupportCustomer]:
            return c.fetch_support(
                params.support_provider,
                self._credentials(params.support_provider, params.support_metadata),
            )

        def combine_step() -> list[CombinedCompany]:
            return combine(results[FETCH_CRM], results[FETCH_SUPPORT], crm_source, params.support_provider)

        def generate_step() -> str:
            text = c.generate_report(results[COMBINE])
            if not isinstance(text, str) or not text.strip():
                raise MalformedReportError("Report generator returned no content")
            return text

        def deliver_step() -> None:
            c.deliver(params.report_destination, params.destination_config, results[GENERATE_REPORT])

        def log_completion_step() -> Optional[str]:
            report_id = c.persist_report_record(run_id, params.user_id, results[GENERATE_REPORT])
            c.advance_next_run(params.user_id, self._clock())
            return report_id

        return [
            (FETCH_CRM, fetch_crm_step),
            (FETCH_SUPPORT, fetch_support_step),
            (COMBINE, combine_step),
            (GENERATE_REPORT, generate_step),
            (DELIVER, deliver_step),
            (LOG_COMPLETION, log_completion_step),
        ]

    def _run_step(self, run_id: str, step: str, body: Callable[[], Any]) -> Any:
        """Reuse a journaled result or execute body with bounded retries."""
        adapter = STEP_RESULTS[step]
        done = self.run_store.completed_step(run_id, step)
        if done is not None:
            logger.info("Run %s: %s already completed (attempt %d), reusing result", run_id, step, done.attempt)
            return adapter.validate_python(done.result)

        attempt_no = self.run_store.attempts(run_id, step)
        # Attempts already journaled by an interrupted execution count toward the bound
        remaining = max(1, self.settings.step_max_attempts - attempt_no)

        def before_sleep(state: RetryCallState) -> None:
            exc = state.outcome.exception() if state.outcome else None
            wait = state.next_action.sleep if state.next_action else 0.0
            logger.warning(
                "Run %s: %s attempt %d failed (%s); retrying in %.1fs",
                run_id,
                step,
                attempt_no,
                _describe(exc) if exc else "?",
                wait,
            )
            self.run_store.set_status(
                run_id,
                RunStatus.STEP_RETRYING,
                current_step=step,
                error=_describe(exc) if exc else None,
            )

        retrying = Retrying(
            stop=stop_after_attempt(remaining),
            wait=wait_exponential(
                multiplier=self.settings.step_backoff_initial,
                max=self.settings.step_backoff_max,
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=before_sleep,
            sleep=self._sleep,
            reraise=True,
        )
        value: Any = None
        for attempt in retrying:
            with attempt:
                attempt_no += 1
                self.run_store.set_status(run_id, RunStatus.RUNNING, current_step=step)
                self.run_store.append_step(run_id, step, StepStatus.RUNNING, attempt_no)
                logger.info("Run %s: %s attempt %d", run_id, step, attempt_no)
                try:
                    value = body()
                except Exception as e:
                    self.run_store.append_step(run_id, step, StepStatus.FAILED, attempt_no, error=_describe(e))
                    raise
                self.run_store.append_step(
                    run_id,
                    step,
                    StepStatus.COMPLETED,
                    attempt_no,
                    result=adapter.dump_python(value, mode="json", by_alias=True),
                )
        return value
