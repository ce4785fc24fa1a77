from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from probabilistic_forecast.adapters.jira.collector import collect_forecast_requests
from probabilistic_forecast.adapters.jira.jira_client import JiraApiError, JiraClient
from probabilistic_forecast.adapters.jira.jira_metrics import JiraBacklog
from probabilistic_forecast.common.logging_config import configure_logging
from probabilistic_forecast.common.progress_ui import progress_ui
from probabilistic_forecast.common.seeding import default_index_sampler
from probabilistic_forecast.config import AppConfig, ConfigError
from probabilistic_forecast.forecasting.domain.errors import ForecastError
from probabilistic_forecast.forecasting.domain.models import ForecastRequest
from probabilistic_forecast.forecasting.reporting.prediction_report import build_report
from probabilistic_forecast.forecasting.services.forecast_service import ForecastService
from probabilistic_forecast.forecasting.simulator.bootstrap import simulate as run_simulation
from probabilistic_forecast.integration.event_bus import InMemoryEventBus
from probabilistic_forecast.integration.events import (
    ForecastComputed,
    ForecastFailed,
    ForecastRequested,
)


app = typer.Typer(add_completion=False)

EXAMPLE_CONFIG = "forecast_config.example.toml"


def _load_config(config: Optional[str]) -> AppConfig:
    path = Path(config).expanduser() if config else None
    if path is not None and not path.exists():
        raise typer.BadParameter(f"Config file not found: {path}")
    return AppConfig.resolve(path)


def _build_client(cfg: AppConfig) -> JiraClient:
    cfg.jira.require_connection()
    return JiraClient(
        base_url=cfg.jira.base_url,
        username=cfg.jira.username,
        token=cfg.jira.token(),
        max_results=cfg.jira.max_results,
    )


def _build_service(
    cfg: AppConfig,
    client: JiraClient,
    bus: InMemoryEventBus | None = None,
) -> ForecastService:
    return ForecastService.with_reports_dir(
        cfg.outputs.resolve_reports_dir(),
        source=JiraBacklog(client=client, bug_issue_type=cfg.jira.bug_issue_type),
        settings=cfg.forecast,
        project_ids=cfg.jira.project_ids,
        bus=bus,
    )


def _fail(exc: Exception) -> None:
    typer.echo(f"Error: {exc}", err=True)
    raise typer.Exit(code=1)


@app.command()
def forecast(
    ticket_id: str = typer.Argument(..., help="Jira ticket to forecast, e.g. ADE-1234"),
    board_id: str = typer.Argument(..., help="Kanban or scrum board holding the ticket"),
    config: Optional[str] = typer.Option(None, help="Path to forecast_config.toml"),
    comment: bool = typer.Option(False, help="Post the forecast as a comment on the ticket"),
    as_json: bool = typer.Option(False, "--json", help="Print structured output"),
    log_dir: Optional[str] = typer.Option(None, help="Also write logs to this directory"),
) -> None:
    """Forecast when a ticket will be done from the team's Jira history."""
    configure_logging(logging.INFO, log_dir=log_dir)
    try:
        cfg = _load_config(config)
        service = _build_service(cfg, _build_client(cfg))
        outcome = service.run(ForecastRequest(ticket_id=ticket_id, board_id=board_id), post_comment=comment)
    except (ConfigError, ValidationError, ForecastError, JiraApiError) as exc:
        _fail(exc)
        return

    if as_json:
        typer.echo(json.dumps(outcome.to_dict(), indent=2))
    else:
        typer.echo(outcome.text())


@app.command()
def collect(
    config: Optional[str] = typer.Option(None, help="Path to forecast_config.toml"),
    comment: bool = typer.Option(True, help="Post each forecast as a comment on its ticket"),
    log_dir: Optional[str] = typer.Option(None, help="Also write logs to this directory"),
) -> None:
    """Forecast every ticket carrying the forecast label."""
    configure_logging(logging.INFO, log_dir=log_dir)
    try:
        cfg = _load_config(config)
        bus = InMemoryEventBus()
        client = _build_client(cfg)
        _build_service(cfg, client, bus=bus)
        pending = collect_forecast_requests(client, label=cfg.jira.forecast_label)
    except (ConfigError, ValidationError, JiraApiError) as exc:
        _fail(exc)
        return

    failures: list[ForecastFailed] = []
    bus.subscribe(ForecastFailed, failures.append)

    with progress_ui() as ui:
        task = ui.progress.add_task("Forecasting", total=len(pending))
        bus.subscribe(ForecastComputed, lambda e: ui.log(f"{e.ticket_id} (board {e.board_id}): forecast done"))
        for req in pending:
            bus.publish(
                ForecastRequested(
                    occurred_at=datetime.now(timezone.utc),
                    ticket_id=req.ticket_id,
                    board_id=req.board_id,
                    post_comment=comment,
                )
            )
            ui.progress.advance(task)

    typer.echo(f"{len(pending) - len(failures)} of {len(pending)} forecasts completed")
    for f in failures:
        typer.echo(f"- {f.ticket_id} (board {f.board_id}): {f.error}", err=True)
    if failures:
        raise typer.Exit(code=1)


@app.command()
def simulate(
    samples: str = typer.Option(..., help="Comma-separated tickets resolved per interval, e.g. 3,5,8"),
    target: int = typer.Option(..., help="Number of tickets to complete"),
    high_target: Optional[int] = typer.Option(None, help="Upper ticket target (defaults to --target)"),
    trials: int = typer.Option(1000, help="Number of simulations"),
    threshold: float = typer.Option(80.0, help="Confidence threshold percentage"),
    interval_days: int = typer.Option(14, help="Length of one interval in days"),
    seed: Optional[int] = typer.Option(None, help="Random seed"),
) -> None:
    """Run the simulation offline on explicit throughput samples."""
    try:
        history = [int(s) for s in samples.split(",") if s.strip()]
    except ValueError:
        raise typer.BadParameter("samples must be comma-separated integers") from None

    high = target if high_target is None else high_target
    if high < target:
        raise typer.BadParameter("--high-target must be at least --target")
    try:
        results = run_simulation(history, high, trials, sampler=default_index_sampler(seed))
        report = build_report(target, high, results, trials, threshold, interval_days)
    except ForecastError as exc:
        _fail(exc)
        return
    typer.echo(report.render())


@app.command()
def init_config(
    path: str = typer.Argument(
        "forecast_config.toml",
        help="Where to write the forecast configuration TOML",
    ),
) -> None:
    """Write an example forecast_config.toml."""
    project_root = Path(__file__).resolve().parents[1]
    template = project_root / EXAMPLE_CONFIG
    if not template.exists():
        raise RuntimeError(f"Missing template file: {template}")

    out = Path(path).expanduser()
    if out.exists():
        raise typer.BadParameter(f"Refusing to overwrite existing file: {out}")

    out.write_text(template.read_text())
    typer.echo(f"Wrote {out} (edit it, then run: probabilistic-forecast forecast TICKET BOARD --config {out})")
