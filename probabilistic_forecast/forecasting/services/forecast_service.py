from __future__ import annotations

import logging
import math
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

from probabilistic_forecast.adapters.jira.jira_metrics import infer_project_ids
from probabilistic_forecast.config import ForecastConfig
from probabilistic_forecast.forecasting.domain.errors import TicketNotFoundError
from probabilistic_forecast.forecasting.domain.models import (
    BacklogSource,
    ForecastRequest,
    TicketList,
    TicketTarget,
)
from probabilistic_forecast.forecasting.reporting.prediction_report import (
    PredictionReport,
    build_report,
)
from probabilistic_forecast.forecasting.services.archive import ForecastArchive
from probabilistic_forecast.forecasting.simulator.bootstrap import BootstrapSimulator
from probabilistic_forecast.forecasting.targets.ticket_target import calculate_ticket_target
from probabilistic_forecast.integration.event_bus import EventBus
from probabilistic_forecast.integration.events import (
    ForecastComputed,
    ForecastFailed,
    ForecastRequested,
)


logger = logging.getLogger(__name__)

COMMENT_HEADER = "*Probabilistic Forecast*"


@dataclass(frozen=True)
class ForecastOutcome:
    request: ForecastRequest
    project_ids: tuple[str, ...]
    backlog_size: int
    bug_ratio: float
    discovery_ratio: float
    target: TicketTarget
    resolved_per_interval: tuple[TicketList, ...]
    simulation_result: tuple[int, ...]
    report: PredictionReport
    progress: str

    @property
    def throughput_samples(self) -> list[int]:
        return [t.total for t in self.resolved_per_interval]

    def text(self) -> str:
        return f"{self.progress}\n{self.report.render()}"

    def comment_body(self) -> str:
        return f"{COMMENT_HEADER}\n\n{self.text()}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "ticket_id": self.request.ticket_id,
            "board_id": self.request.board_id,
            "project_ids": list(self.project_ids),
            "backlog_size": self.backlog_size,
            "bug_ratio": _json_ratio(self.bug_ratio),
            "discovery_ratio": _json_ratio(self.discovery_ratio),
            "target": asdict(self.target),
            "resolved_per_interval": [
                {"total": t.total, "issues": list(t.issues)} for t in self.resolved_per_interval
            ],
            "report": self.report.to_dict(),
        }


def _json_ratio(ratio: float) -> float | None:
    # JSON has no infinity; None means "no such tickets created".
    return None if math.isinf(ratio) else ratio


def _ratio_line(ratio: float, finite: str, infinite: str) -> str:
    return finite.format(ratio=f"{ratio:g}") if math.isfinite(ratio) else infinite


@dataclass
class ForecastService:
    """Runs forecasts for tickets against an issue tracker backlog."""

    source: BacklogSource
    settings: ForecastConfig = field(default_factory=ForecastConfig)
    project_ids: Sequence[str] = ()
    bus: EventBus | None = None
    archive: ForecastArchive | None = None

    def __post_init__(self) -> None:
        if self.bus is not None:
            self.bus.subscribe(ForecastRequested, self._on_forecast_requested)

    @classmethod
    def with_reports_dir(cls, reports_dir: Path | None, **kwargs: Any) -> "ForecastService":
        archive = ForecastArchive(reports_dir) if reports_dir is not None else None
        return cls(archive=archive, **kwargs)

    # --- Event handlers -----------------------------------------------------

    def _on_forecast_requested(self, e: ForecastRequested) -> None:
        assert self.bus is not None
        request = ForecastRequest(ticket_id=e.ticket_id, board_id=e.board_id)
        try:
            outcome = self.run(request, post_comment=e.post_comment)
        except Exception as exc:
            logger.exception("Forecast failed for %s on board %s", e.ticket_id, e.board_id)
            self.bus.publish(
                ForecastFailed(
                    occurred_at=datetime.now(timezone.utc),
                    ticket_id=e.ticket_id,
                    board_id=e.board_id,
                    error=str(exc),
                )
            )
            return

        self.bus.publish(
            ForecastComputed(
                occurred_at=datetime.now(timezone.utc),
                ticket_id=e.ticket_id,
                board_id=e.board_id,
                result=outcome.to_dict(),
                text=outcome.text(),
            )
        )

    # --- Forecast API -------------------------------------------------------

    def run(self, request: ForecastRequest, post_comment: bool = False) -> ForecastOutcome:
        cfg = self.settings
        ticket_id, board_id = request.ticket_id, request.board_id
        logger.info("Forecasting %s on board %s", ticket_id, board_id)

        lines = [f"Counting tickets ahead of {ticket_id} in board {board_id}..."]
        tickets = self.source.issues_for_board(board_id)
        # Checked before the ratio queries, which need at least one project.
        if ticket_id not in tickets.issues:
            raise TicketNotFoundError(ticket_id, board_id)

        # Inferred projects miss work resolved in projects with nothing left on
        # the board, which understates velocity. Configure them to avoid that.
        project_ids = list(self.project_ids) or infer_project_ids(tickets)

        bug_ratio = (
            cfg.bug_ratio
            if cfg.bug_ratio is not None
            else self.source.fetch_bug_ratio(project_ids, cfg.num_days_of_history)
        )
        discovery_ratio = (
            cfg.discovery_ratio
            if cfg.discovery_ratio is not None
            else self.source.fetch_discovery_ratio(project_ids, cfg.num_days_of_history)
        )

        target = calculate_ticket_target(
            bug_ratio,
            discovery_ratio,
            board_id,
            ticket_id,
            tickets.issues,
            cfg.ticket_target,
        )
        logger.info(
            "Ticket target for %s: %d above, %d..%d to complete",
            ticket_id,
            target.number_of_tickets_above_target,
            target.low_ticket_target,
            target.high_ticket_target,
        )

        num_intervals = cfg.num_days_of_history / cfg.duration_in_days
        lines.append(
            f"There are {len(tickets.issues)} tickets in board {board_id} that are either in "
            f"progress or still to do. Of those, {target.number_of_tickets_above_target} tickets "
            f"are ahead of {ticket_id} in priority order."
        )
        lines.append(f"Project interval is {cfg.time_length} {cfg.time_unit}")
        lines.append(
            f"The team's past performance will be measured based on tickets in project(s) "
            f"{', '.join(project_ids)} that have been resolved in the last {num_intervals:g} "
            f"project intervals ({cfg.num_days_of_history} days of history will be considered "
            f"in total)."
        )
        lines.append("")

        resolved = self.source.fetch_resolved_tickets_per_interval(
            project_ids,
            cfg.duration_in_days,
            cfg.num_days_of_history,
        )
        for idx, interval in enumerate(resolved, start=1):
            # Ticket keys are listed so archived forecasts can be audited later.
            lines.append(
                f"Resolved {interval.total} tickets in project interval {idx}: "
                f"{', '.join(interval.issues)}"
            )
        lines.append("")

        lines.append(
            _ratio_line(
                bug_ratio,
                "1 bug ticket created for every {ratio} non-bug tickets.",
                "No bug tickets created.",
            )
        )
        lines.append(
            _ratio_line(
                discovery_ratio,
                "1 new non-bug ticket created for every {ratio} tickets resolved.",
                "No non-bug tickets created.",
            )
        )
        lines.append(
            f"If the team continues to create new tickets at this rate, we predict the "
            f"{target.low_ticket_target} outstanding tickets will have grown to "
            f"{target.high_ticket_target} tickets by the time they have all been completed."
        )
        lines.append(f"Running {cfg.num_simulations} simulations...")

        simulator = BootstrapSimulator(num_trials=cfg.num_simulations, rng_seed=cfg.rng_seed)
        results = simulator.run([t.total for t in resolved], target.high_ticket_target)

        report = build_report(
            target.low_ticket_target,
            target.high_ticket_target,
            results,
            cfg.num_simulations,
            cfg.confidence_percentage_threshold,
            cfg.duration_in_days,
        )

        outcome = ForecastOutcome(
            request=request,
            project_ids=tuple(project_ids),
            backlog_size=len(tickets.issues),
            bug_ratio=bug_ratio,
            discovery_ratio=discovery_ratio,
            target=target,
            resolved_per_interval=tuple(resolved),
            simulation_result=results,
            report=report,
            progress="\n".join(lines) + "\n",
        )

        if self.archive is not None:
            self.archive.save(outcome.to_dict(), ticket_id=ticket_id)
        if post_comment:
            self.source.comment_issue(ticket_id, outcome.comment_body())

        return outcome
