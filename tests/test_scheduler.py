"""Tests for schedule arithmetic, manual triggers and the scheduled batch."""

import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from churn_report.errors import ConfigurationError, MissingConnectionError, PersistenceError
from churn_report.models.workflow import RunStatus
from churn_report.store import ReportStore, RunStore, WorkflowConfig, WorkflowConfigStore
from churn_report.workflow import (
    Collaborators,
    StepOrchestrator,
    advance_schedule,
    build_params,
    next_run_at,
    run_scheduled,
)
from helpers import make_support

NOW = datetime(2024, 1, 31, 9, 0, tzinfo=timezone.utc)
ZENDESK = {"subdomain": "acme", "clientId": "zd-id", "clientSecret": "zd-secret"}


@pytest.fixture
def config_store(temp_db: Path) -> WorkflowConfigStore:
    return WorkflowConfigStore(temp_db)


def _configure(store: WorkflowConfigStore, user_id: str, **kwargs) -> WorkflowConfig:
    config = WorkflowConfig(
        user_id=user_id,
        support_provider="zendesk",
        report_destination="slack",
        destination_config="https://hooks.slack.com/services/T/B/X",
        **kwargs,
    )
    return store.upsert_config(config)


class TestNextRunAt:
    """Tests for next_run_at."""

    def test_daily_and_weekly(self) -> None:
        assert next_run_at("daily", NOW) == NOW + timedelta(days=1)
        assert next_run_at("weekly", NOW) == NOW + timedelta(days=7)

    def test_monthly_clamps_to_month_end(self) -> None:
        """Jan 31 plus one month lands on the last day of February."""
        assert next_run_at("monthly", NOW) == datetime(2024, 2, 29, 9, 0, tzinfo=timezone.utc)
        assert next_run_at("monthly", datetime(2023, 12, 15, tzinfo=timezone.utc)) == datetime(
            2024, 1, 15, tzinfo=timezone.utc
        )

    def test_unknown_frequency(self) -> None:
        with pytest.raises(ValueError):
            next_run_at("fortnightly", NOW)


class TestAdvanceSchedule:
    """Tests for advance_schedule."""

    def test_moves_next_run(self, config_store: WorkflowConfigStore) -> None:
        """next_run_at is the completion time plus the frequency; last_run_at is the completion time."""
        _configure(config_store, "user-1", frequency="daily", next_run_at=NOW)
        assert advance_schedule(config_store, "user-1", NOW) == NOW + timedelta(days=1)
        config = config_store.get_config("user-1")
        assert config.next_run_at == NOW + timedelta(days=1)
        assert config.last_run_at == NOW

    def test_missing_config(self, config_store: WorkflowConfigStore, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING):
            assert advance_schedule(config_store, "ghost", NOW) is None
        assert "ghost" in caplog.text


class TestBuildParams:
    """Tests for build_params."""

    def test_no_config(self, config_store: WorkflowConfigStore) -> None:
        with pytest.raises(ConfigurationError):
            build_params(config_store, "user-1")

    def test_missing_support_connection(self, config_store: WorkflowConfigStore) -> None:
        """The support connection is required."""
        _configure(config_store, "user-1")
        with pytest.raises(MissingConnectionError, match="zendesk"):
            build_params(config_store, "user-1")

    def test_crm_without_connection_skipped(self, config_store: WorkflowConfigStore) -> None:
        """A configured CRM with no stored connection runs support-only."""
        _configure(config_store, "user-1", crm_provider="salesforce")
        config_store.save_connection("user-1", "zendesk", ZENDESK)
        params = build_params(config_store, "user-1")
        assert params.has_crm is False
        assert params.support_metadata == ZENDESK
        assert params.report_destination == "slack"

    def test_crm_with_connection(self, config_store: WorkflowConfigStore) -> None:
        _configure(config_store, "user-1", crm_provider="hubspot")
        config_store.save_connection("user-1", "zendesk", ZENDESK)
        config_store.save_connection("user-1", "hubspot", {"clientId": "a", "clientSecret": "b"})
        params = build_params(config_store, "user-1")
        assert params.crm_provider == "hubspot"
        assert params.crm_metadata == {"clientId": "a", "clientSecret": "b"}


class TestRunScheduled:
    """Tests for run_scheduled."""

    @pytest.fixture
    def orchestrator(self, temp_db: Path, config_store: WorkflowConfigStore) -> StepOrchestrator:
        report_store = ReportStore(temp_db)

        def fetch_support(provider, creds):
            if creds.get("subdomain") == "broken":
                raise ConfigurationError("zendesk: bad subdomain")
            return [make_support()]

        collaborators = Collaborators(
            fetch_crm=lambda provider, creds: [],
            fetch_support=fetch_support,
            generate_report=lambda companies: "# Customer Churn Risk Report",
            deliver=lambda destination, config, text: None,
            persist_report_record=lambda run_id, user_id, text: report_store.add(run_id, user_id, text).id,
            advance_next_run=lambda user_id, at: advance_schedule(config_store, user_id, at),
        )
        return StepOrchestrator(RunStore(temp_db), collaborators, sleep=lambda s: None, clock=lambda: NOW)

    def test_due_users_run_and_advance(
        self, orchestrator: StepOrchestrator, config_store: WorkflowConfigStore
    ) -> None:
        """Successful, failing and untriggerable users each advance by their own frequency."""
        past = NOW - timedelta(minutes=5)
        _configure(config_store, "ok", frequency="daily", next_run_at=past)
        config_store.save_connection("ok", "zendesk", ZENDESK)
        _configure(config_store, "broken", frequency="weekly", next_run_at=past)
        config_store.save_connection("broken", "zendesk", {**ZENDESK, "subdomain": "broken"})
        _configure(config_store, "unconnected", frequency="monthly", next_run_at=past)
        _configure(config_store, "future", next_run_at=NOW + timedelta(days=1))

        results = run_scheduled(orchestrator, config_store, NOW, max_workers=3)

        assert [r.user_id for r in results] == ["broken", "ok", "unconnected"]
        by_user = {r.user_id: r for r in results}
        assert by_user["ok"].ok
        assert by_user["broken"].run.status == RunStatus.FAILED
        assert by_user["unconnected"].run is None
        assert "No zendesk connection" in by_user["unconnected"].error

        assert config_store.get_config("ok").next_run_at == NOW + timedelta(days=1)
        assert config_store.get_config("ok").last_run_at == NOW
        assert config_store.get_config("broken").next_run_at == NOW + timedelta(days=7)
        assert config_store.get_config("broken").last_run_at is None
        assert config_store.get_config("unconnected").next_run_at == datetime(2024, 2, 29, 9, 0, tzinfo=timezone.utc)
        assert config_store.get_config("future").next_run_at == NOW + timedelta(days=1)
        assert config_store.due_configs(NOW) == []

    def test_nothing_due(self, orchestrator: StepOrchestrator, config_store: WorkflowConfigStore) -> None:
        assert run_scheduled(orchestrator, config_store, NOW) == []

    def test_store_error_for_one_user_keeps_others(
        self, orchestrator: StepOrchestrator, config_store: WorkflowConfigStore, temp_db: Path
    ) -> None:
        """A user whose schedule cannot be advanced still gets a result, and so does everyone else."""

        class LockedForA(WorkflowConfigStore):
            def advance_next_run(self, user_id, next_run_at, *, last_run_at=None):
                if user_id == "a":
                    raise PersistenceError("database is locked")
                super().advance_next_run(user_id, next_run_at, last_run_at=last_run_at)

        past = NOW - timedelta(minutes=5)
        _configure(config_store, "a", next_run_at=past)
        _configure(config_store, "b", next_run_at=past)

        results = run_scheduled(orchestrator, LockedForA(temp_db), NOW, max_workers=2)

        assert [r.user_id for r in results] == ["a", "b"]
        assert "schedule not advanced: database is locked" in results[0].error
        assert "No zendesk connection" in results[0].error
        assert config_store.get_config("a").next_run_at == past
        assert config_store.get_config("b").next_run_at == NOW + timedelta(days=7)
