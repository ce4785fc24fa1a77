from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from probabilistic_forecast.adapters.jira.jira_client import STANDARD_TICKETS_JQL, JiraClient
from probabilistic_forecast.forecasting.domain.models import TicketList
from probabilistic_forecast.forecasting.targets.ticket_target import compute_ratio

logger = logging.getLogger(__name__)


def project_clause(project_ids: Sequence[str]) -> str:
    if not project_ids:
        raise ValueError("At least one project id is required")
    return f"project in ({', '.join(project_ids)})"


def infer_project_ids(tickets: TicketList) -> list[str]:
    """Unique project keys of `tickets`, in first-seen order."""
    projects: list[str] = []
    for key in tickets.issues:
        prefix = key.split("-", 1)[0]
        if prefix and prefix not in projects:
            projects.append(prefix)
    return projects


def resolved_interval_queries(
    project_ids: Sequence[str],
    duration_in_days: int,
    num_days_of_history: int,
) -> list[str]:
    """One JQL query per interval, walking back from today."""
    queries: list[str] = []
    history_start = -duration_in_days
    history_end = 0
    while history_start >= -num_days_of_history:
        queries.append(
            f"{project_clause(project_ids)} AND {STANDARD_TICKETS_JQL} "
            f"AND resolved >= {history_start}d AND resolved <= {history_end}d"
        )
        history_start -= duration_in_days
        history_end -= duration_in_days
    return queries


@dataclass
class JiraBacklog:
    """Jira-backed source of backlog order, throughput and ratios."""

    client: JiraClient
    bug_issue_type: str = "Fault"

    def issues_for_board(self, board_id: str) -> TicketList:
        return self.client.issues_for_board(board_id)

    # TODO: measure throughput by the date QA finished rather than the resolution date.
    def fetch_resolved_tickets_per_interval(
        self,
        project_ids: Sequence[str],
        duration_in_days: int,
        num_days_of_history: int,
    ) -> list[TicketList]:
        return [
            self.client.search(q)
            for q in resolved_interval_queries(project_ids, duration_in_days, num_days_of_history)
        ]

    def _non_bug_created(self, project_ids: Sequence[str], num_days_of_history: int) -> int:
        return self.client.count(
            f"{project_clause(project_ids)} AND {STANDARD_TICKETS_JQL} "
            f"AND issuetype != {self.bug_issue_type} AND created >= -{num_days_of_history}d"
        )

    def fetch_bug_ratio(self, project_ids: Sequence[str], num_days_of_history: int) -> float:
        """Non-bug tickets created per bug created over the history window."""
        bugs = self.client.count(
            f"{project_clause(project_ids)} AND issuetype = {self.bug_issue_type} "
            f"AND created >= -{num_days_of_history}d"
        )
        others = self._non_bug_created(project_ids, num_days_of_history)
        logger.debug("Bug ratio inputs: %d non-bug, %d bug tickets created", others, bugs)
        return compute_ratio(others, bugs)

    def fetch_discovery_ratio(self, project_ids: Sequence[str], num_days_of_history: int) -> float:
        """Tickets resolved per new non-bug ticket created over the history window."""
        created = self._non_bug_created(project_ids, num_days_of_history)
        resolved = self.client.count(
            f"{project_clause(project_ids)} AND {STANDARD_TICKETS_JQL} "
            f"AND resolved >= -{num_days_of_history}d"
        )
        logger.debug("Discovery ratio inputs: %d resolved, %d created", resolved, created)
        return compute_ratio(resolved, created)

    def comment_issue(self, issue_key: str, body: str) -> None:
        self.client.comment_issue(issue_key, body)
