"""Main CLI entry point."""

import argparse
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from churn_report.config import Settings
from churn_report.errors import ChurnReportError


def main(argv: Optional[list[str]] = None) -> None:
    """Parse args and dispatch to subcommands."""
    parser = argparse.ArgumentParser(prog="churn-report", description="CRM + support churn risk reports")
    parser.add_argument("--db", type=Path, default=None, help="Path to SQLite database (default: CHURN_REPORT_DB)")
    parser.add_argument("--config", type=Path, default=None, help="Settings YAML (overrides environment)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # configure
    configure_parser = subparsers.add_parser("configure", help="Create or update a user's workflow config")
    configure_parser.add_argument("--user", required=True, help="User id")
    configure_parser.add_argument(
        "--support",
        required=True,
        choices=["zendesk", "intercom", "freshdesk"],
        help="Support platform",
    )
    configure_parser.add_argument(
        "--crm",
        default="none",
        choices=["none", "hubspot", "salesforce"],
        help="CRM platform (default: none)",
    )
    configure_parser.add_argument("--destination", required=True, choices=["email", "slack"])
    configure_parser.add_argument("--to", required=True, help="Recipient email address or Slack webhook URL")
    configure_parser.add_argument(
        "--frequency",
        default="weekly",
        choices=["daily", "weekly", "monthly"],
        help="Report frequency (default: weekly)",
    )
    configure_parser.add_argument("--disabled", action="store_true", help="Store the config but do not schedule it")

    # connect
    connect_parser = subparsers.add_parser("connect", help="Store provider connection metadata directly")
    connect_parser.add_argument("--user", required=True)
    connect_parser.add_argument("--provider", required=True)
    connect_parser.add_argument(
        "--metadata",
        required=True,
        help='Connection metadata as JSON, e.g. \'{"subdomain": "acme"}\'',
    )

    # authorize
    authorize_parser = subparsers.add_parser("authorize", help="Print the provider OAuth consent URL")
    authorize_parser.add_argument("--user", required=True)
    authorize_parser.add_argument("--provider", required=True)
    authorize_parser.add_argument("--subdomain", default=None, help="Zendesk/Freshdesk subdomain")
    authorize_parser.add_argument("--instance-url", default=None, help="Salesforce instance URL")

    # callback
    callback_parser = subparsers.add_parser("callback", help="Complete OAuth with the callback code and state")
    callback_parser.add_argument("--provider", required=True)
    callback_parser.add_argument("--code", required=True)
    callback_parser.add_argument("--state", required=True)

    # fetch
    fetch_parser = subparsers.add_parser("fetch", help="Fetch standardized records from one provider")
    fetch_parser.add_argument("--user", required=True, help="Use this user's stored connection")
    fetch_parser.add_argument("--provider", required=True)
    fetch_parser.add_argument("--output", type=Path, default=None, help="Write JSON to file (default: stdout)")

    # run
    run_parser = subparsers.add_parser("run", help="Trigger a report run for a user now")
    run_parser.add_argument("--user", required=True)

    # resume
    resume_parser = subparsers.add_parser("resume", help="Resume an interrupted run")
    resume_parser.add_argument("run_id")

    # status
    status_parser = subparsers.add_parser("status", help="Show a run and its step journal, or recent runs")
    status_parser.add_argument("run_id", nargs="?", default=None)
    status_parser.add_argument("--user", default=None, help="Filter recent runs by user")
    status_parser.add_argument("--limit", type=int, default=20)

    # schedule
    schedule_parser = subparsers.add_parser("schedule", help="Run every workflow that is due")
    schedule_parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="Treat this ISO timestamp as the current time (default: now)",
    )

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = _load_settings(args)

    commands = {
        "configure": _run_configure,
        "connect": _run_connect,
        "authorize": _run_authorize,
        "callback": _run_callback,
        "fetch": _run_fetch,
        "run": _run_run,
        "resume": _run_resume,
        "status": _run_status,
        "schedule": _run_schedule,
    }
    try:
        commands[args.command](args, settings)
    except ChurnReportError as e:
        print(f"Error: {e}", file=sys.stderr)
        raise SystemExit(1)


def _load_settings(args: argparse.Namespace) -> Settings:
    settings = Settings.from_yaml(args.config) if args.config else Settings.from_env()
    if args.db is not None:
        settings = settings.model_copy(update={"db_path": args.db})
    return settings


def _orchestrator(settings: Settings):
    from churn_report.store import ReportStore, RunStore, WorkflowConfigStore
    from churn_report.workflow import Collaborators, StepOrchestrator

    config_store = WorkflowConfigStore(settings.db_path)
    collaborators = Collaborators.from_settings(settings, config_store, ReportStore(settings.db_path))
    return StepOrchestrator(RunStore(settings.db_path), collaborators, settings), config_store


def _print_run(run) -> None:
    print(f"{run.run_id}  {run.status.value}  step={run.current_step or '-'}")
    if run.error:
        print(f"  error: {run.error}")


def _run_configure(args: argparse.Namespace, settings: Settings) -> None:
    """Run configure command. New configs are first scheduled one period from now."""
    from churn_report.store import WorkflowConfig, WorkflowConfigStore
    from churn_report.workflow import next_run_at

    store = WorkflowConfigStore(settings.db_path)
    existing = store.get_config(args.user)
    config = store.upsert_config(
        WorkflowConfig(
            user_id=args.user,
            crm_provider=args.crm,
            support_provider=args.support,
            report_destination=args.destination,
            destination_config=args.to,
            frequency=args.frequency,
            enabled=not args.disabled,
            next_run_at=None if existing and existing.next_run_at else next_run_at(args.frequency),
        )
    )
    next_run = config.next_run_at.isoformat() if config.next_run_at else "-"
    print(f"Configured {config.user_id}: {config.support_provider} + {config.crm_provider} -> {config.report_destination} ({config.frequency}, next run {next_run})")


def _run_connect(args: argparse.Namespace, settings: Settings) -> None:
    """Run connect command."""
    from churn_report.store import WorkflowConfigStore

    try:
        metadata = json.loads(args.metadata)
    except json.JSONDecodeError:
        raise SystemExit("--metadata must be a JSON object")
    if not isinstance(metadata, dict):
        raise SystemExit("--metadata must be a JSON object")
    WorkflowConfigStore(settings.db_path).save_connection(args.user, args.provider, metadata)
    print(f"Stored {args.provider.lower()} connection for {args.user}")


def _run_authorize(args: argparse.Namespace, settings: Settings) -> None:
    """Run authorize command."""
    from churn_report.oauth import authorize_url

    extra = {"subdomain": args.subdomain, "instance_url": args.instance_url}
    print(authorize_url(settings, args.provider, args.user, **{k: v for k, v in extra.items() if v}))


def _run_callback(args: argparse.Namespace, settings: Settings) -> None:
    """Run callback command."""
    from churn_report.oauth import complete_callback
    from churn_report.store import WorkflowConfigStore

    connection = complete_callback(
        settings, WorkflowConfigStore(settings.db_path), args.provider, args.code, args.state
    )
    print(f"Connected {connection.provider} for {connection.user_id}")


def _run_fetch(args: argparse.Namespace, settings: Settings) -> None:
    """Run fetch command: standardized CRM companies or support customers as JSON."""
    from churn_report.connectors.registry import ConnectorRegistry, fetch_crm, fetch_support
    from churn_report.errors import MissingConnectionError
    from churn_report.store import WorkflowConfigStore

    provider = args.provider.lower()
    connection = WorkflowConfigStore(settings.db_path).get_connection(args.user, provider)
    if connection is None:
        raise MissingConnectionError(args.user, provider)
    app = {k: v for k, v in settings.provider_client(provider).items() if v}
    credentials = {**connection.metadata, **app}
    kwargs = dict(timeout=settings.http_timeout, max_pages=settings.max_pages)
    if provider in ConnectorRegistry.available_crm():
        records = fetch_crm(provider, credentials, **kwargs)
    else:
        records = fetch_support(provider, credentials, **kwargs)
    output = json.dumps(
        [r.model_dump(mode="json", by_alias=True, exclude_none=True) for r in records],
        indent=2,
        default=str,
    )
    if args.output:
        args.output.write_text(output, encoding="utf-8")
        print(f"Wrote {len(records)} {provider} records to {args.output}")
    else:
        print(output)


def _run_run(args: argparse.Namespace, settings: Settings) -> None:
    """Run run command."""
    from churn_report.models.workflow import RunStatus
    from churn_report.workflow import trigger_run

    orchestrator, config_store = _orchestrator(settings)
    run = trigger_run(orchestrator, config_store, args.user)
    _print_run(run)
    if run.status != RunStatus.COMPLETED:
        raise SystemExit(1)


def _run_resume(args: argparse.Namespace, settings: Settings) -> None:
    """Run resume command."""
    from churn_report.models.workflow import RunStatus

    orchestrator, _ = _orchestrator(settings)
    run = orchestrator.resume(args.run_id)
    _print_run(run)
    if run.status != RunStatus.COMPLETED:
        raise SystemExit(1)


def _run_status(args: argparse.Namespace, settings: Settings) -> None:
    """Run status command."""
    from churn_report.store import RunStore

    store = RunStore(settings.db_path)
    if args.run_id:
        run = store.require_run(args.run_id)
        _print_run(run)
        for entry in store.journal(args.run_id):
            line = f"  {entry.recorded_at.isoformat()}  {entry.step:<16} {entry.status.value:<10} attempt {entry.attempt}"
            if entry.error:
                line += f"  {entry.error}"
            print(line)
        return
    runs = store.list_runs(args.user, limit=args.limit)
    if not runs:
        print("No runs recorded.")
    for run in runs:
        _print_run(run)


def _run_schedule(args: argparse.Namespace, settings: Settings) -> None:
    """Run schedule command."""
    from churn_report.workflow import run_scheduled

    now = datetime.now(timezone.utc)
    if args.now:
        try:
            now = datetime.fromisoformat(args.now)
        except ValueError:
            raise SystemExit("Invalid --now format. Use an ISO timestamp, e.g. 2025-01-31T09:00:00+00:00.")
    orchestrator, config_store = _orchestrator(settings)
    results = run_scheduled(orchestrator, config_store, now, max_workers=settings.scheduler_workers)
    for r in results:
        status = r.run.status.value if r.run else "not started"
        print(f"{r.user_id}: {status}" + (f" ({r.error})" if r.error else ""))
    print(f"Scheduled: {sum(1 for r in results if r.ok)}/{len(results)} completed")


if __name__ == "__main__":
    main()
