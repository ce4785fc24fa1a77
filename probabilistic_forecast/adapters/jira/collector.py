from __future__ import annotations

import logging
from typing import Any

from probabilistic_forecast.adapters.jira.jira_client import PLATFORM_API, JiraClient
from probabilistic_forecast.forecasting.domain.models import ForecastRequest

logger = logging.getLogger(__name__)


def _labelled_issues(client: JiraClient, label: str) -> list[dict[str, Any]]:
    data = client.get(
        f"{PLATFORM_API}/search",
        params={
            "jql": f"labels = {label} ORDER BY created DESC",
            "maxResults": client.max_results,
            "fields": "key,project",
        },
    )
    return list((data or {}).get("issues", []))


def collect_forecast_requests(client: JiraClient, label: str = "forecast") -> list[ForecastRequest]:
    """Find tickets labelled for forecasting and the boards they sit on.

    A ticket on several boards yields one request per board. Tickets that
    are on no board are skipped.
    """
    found: list[ForecastRequest] = []
    boards_by_project: dict[str, list[dict[str, Any]]] = {}

    for issue in _labelled_issues(client, label):
        key = str(issue["key"])
        project_id = str(issue["fields"]["project"]["id"])
        if project_id not in boards_by_project:
            boards_by_project[project_id] = client.boards_for_project(project_id)

        on_board = False
        for board in boards_by_project[project_id]:
            board_id = str(board["id"])
            if client.board_contains_issue(board_id, key):
                found.append(ForecastRequest(ticket_id=key, board_id=board_id))
                on_board = True

        if not on_board:
            logger.info("Ticket %s is labelled '%s' but is not on any board", key, label)

    logger.info("%d forecast requests collected", len(found))
    return found
