from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Iterator

import requests

from probabilistic_forecast.forecasting.domain.models import TicketList

logger = logging.getLogger(__name__)

AGILE_API = "/rest/agile/1.0"
PLATFORM_API = "/rest/api/2"
DEFAULT_RETRY_AFTER_S = 10

# Tickets that count as work: no epics, no sub-tasks.
STANDARD_TICKETS_JQL = "issuetype in standardIssueTypes() AND issuetype != Epic"


class JiraApiError(RuntimeError):
    pass


def parse_ticket_response(data: dict[str, Any]) -> TicketList:
    issues = tuple(str(issue["key"]) for issue in data.get("issues", []))
    return TicketList(total=int(data.get("total", len(issues))), issues=issues)


def _retry_after_seconds(value: str | None, default: int = DEFAULT_RETRY_AFTER_S) -> int:
    # Retry-After may also be an HTTP date; fall back to the default wait then.
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


@dataclass
class JiraClient:
    base_url: str
    username: str
    token: str
    user_agent: str = "probabilistic-forecast"
    timeout_s: int = 60
    max_results: int = 1000
    max_retries: int = 5

    def _headers(self) -> dict[str, str]:
        return {
            "Accept": "application/json",
            "User-Agent": self.user_agent,
            "X-Atlassian-Token": "no-check",
        }

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        url = self.base_url.rstrip("/") + path
        retries = 0
        while True:
            resp = requests.request(
                method,
                url,
                headers=self._headers(),
                auth=(self.username, self.token),
                timeout=self.timeout_s,
                **kwargs,
            )
            if resp.status_code == 429:
                if retries >= self.max_retries:
                    raise JiraApiError(f"{method} {path} failed: still rate limited after {retries} retries")
                retries += 1
                wait_s = _retry_after_seconds(resp.headers.get("Retry-After"))
                logger.warning("Jira rate limit hit. Sleeping %ss (retry %d of %d)", wait_s, retries, self.max_retries)
                time.sleep(max(1, wait_s))
                continue
            if resp.status_code >= 400:
                raise JiraApiError(f"{method} {path} failed: {resp.status_code} {resp.text}")
            if not resp.content:
                return None
            return resp.json()

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self._request("GET", path, params=params)

    def post(self, path: str, payload: dict[str, Any]) -> Any:
        return self._request("POST", path, json=payload)

    # --- Search -------------------------------------------------------------

    def search(self, jql: str, max_results: int | None = None, start_at: int = 0) -> TicketList:
        params = {
            "jql": jql,
            "startAt": start_at,
            "maxResults": self.max_results if max_results is None else max_results,
            "fields": "key",
        }
        return parse_ticket_response(self.get(f"{PLATFORM_API}/search", params=params))

    def count(self, jql: str) -> int:
        # maxResults=0: only the total is needed, and it comes in the metadata.
        return self.search(jql, max_results=0).total

    # --- Boards -------------------------------------------------------------

    def _paginate_issues(self, path: str, jql: str | None = None) -> Iterator[str]:
        start_at = 0
        while True:
            params: dict[str, Any] = {
                "startAt": start_at,
                "maxResults": self.max_results,
                "fields": "key",
            }
            if jql:
                params["jql"] = jql
            page = parse_ticket_response(self.get(path, params=params))
            yield from page.issues
            start_at += len(page.issues)
            if not page.issues or start_at >= page.total:
                return

    def _paginate_values(self, path: str, params: dict[str, Any] | None = None) -> Iterator[Any]:
        params = dict(params or {})
        start_at = 0
        while True:
            params["startAt"] = start_at
            data = self.get(path, params=params) or {}
            values = data.get("values", [])
            yield from values
            start_at += len(values)
            if not values or data.get("isLast", True):
                return

    def get_board(self, board_id: str) -> dict[str, Any]:
        return self.get(f"{AGILE_API}/board/{board_id}")

    def boards_for_project(self, project: str) -> list[dict[str, Any]]:
        return list(self._paginate_values(f"{AGILE_API}/board", params={"projectKeyOrId": project}))

    def board_contains_issue(self, board_id: str, issue_key: str) -> bool:
        data = self.get(
            f"{AGILE_API}/board/{board_id}/issue",
            params={"jql": f"issue = {issue_key}", "maxResults": 0, "fields": "key"},
        )
        return int((data or {}).get("total", 0)) == 1

    def issues_for_board(self, board_id: str) -> TicketList:
        """Return in-progress and to-do tickets of a board in priority order."""
        board = self.get_board(board_id)
        board_type = str(board.get("type", ""))
        if board_type == "kanban":
            keys = self._kanban_issues(board_id)
        elif board_type == "scrum":
            keys = self._scrum_issues(board_id)
        else:
            raise JiraApiError(f"Unknown board type [{board_type}] for board [{board_id}].")
        logger.info("Board %s (%s): %d open tickets", board_id, board_type, len(keys))
        return TicketList.of(keys)

    def _kanban_issues(self, board_id: str) -> list[str]:
        keys: list[str] = []
        for status_category in ("In Progress", "To Do"):
            jql = f'{STANDARD_TICKETS_JQL} AND statusCategory = "{status_category}"'
            keys.extend(self._paginate_issues(f"{AGILE_API}/board/{board_id}/issue", jql=jql))
        return keys

    def _scrum_issues(self, board_id: str) -> list[str]:
        # Active sprint first, then future sprints in order, then the backlog.
        jql = f"{STANDARD_TICKETS_JQL} AND statusCategory != Done"
        sprints = list(
            self._paginate_values(
                f"{AGILE_API}/board/{board_id}/sprint",
                params={"state": "active,future"},
            )
        )
        sprints.sort(key=lambda s: 0 if s.get("state") == "active" else 1)

        keys: list[str] = []
        for sprint in sprints:
            keys.extend(
                self._paginate_issues(
                    f"{AGILE_API}/board/{board_id}/sprint/{sprint['id']}/issue",
                    jql=jql,
                )
            )
        keys.extend(self._paginate_issues(f"{AGILE_API}/board/{board_id}/backlog", jql=jql))

        return list(dict.fromkeys(keys))

    # --- Comments -----------------------------------------------------------

    def comment_issue(self, issue_key: str, body: str) -> None:
        self.post(f"{PLATFORM_API}/issue/{issue_key}/comment", {"body": body})
        logger.info("Posted forecast comment on %s", issue_key)
