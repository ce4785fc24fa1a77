from __future__ import annotations

import pytest

from probabilistic_forecast.adapters.jira import jira_client as jira_module
from probabilistic_forecast.adapters.jira.jira_client import JiraApiError, JiraClient


def _client() -> JiraClient:
    return JiraClient(base_url="https://jira.example.com", username="bot", token="t", max_results=2)


def test_count_uses_zero_max_results(fake_jira, issues_page) -> None:
    fake_jira.on("GET", "/rest/api/2/search", lambda p: issues_page([], total=17))

    assert _client().count("project in (ADE)") == 17
    method, path, params, _ = fake_jira.calls[0]
    assert params["maxResults"] == 0
    assert params["jql"] == "project in (ADE)"


def test_kanban_board_lists_in_progress_then_to_do(fake_jira, issues_page, respond) -> None:
    fake_jira.on("GET", "/rest/agile/1.0/board/74", lambda p: respond({"id": 74, "type": "kanban"}))

    def board_issues(params):
        if "In Progress" in params["jql"]:
            return issues_page(["ADE-9"])
        # Paginated to-do list: two pages of two, then one.
        pages = {0: ["ADE-1", "ADE-2"], 2: ["ADE-3", "OPS-4"], 4: ["ADE-5"]}
        return issues_page(pages[params["startAt"]], total=5)

    fake_jira.on("GET", "/rest/agile/1.0/board/74/issue", board_issues)

    tickets = _client().issues_for_board("74")

    assert tickets.issues == ("ADE-9", "ADE-1", "ADE-2", "ADE-3", "OPS-4", "ADE-5")
    assert tickets.total == 6


def test_scrum_board_lists_sprints_then_backlog(fake_jira, issues_page, respond) -> None:
    fake_jira.on("GET", "/rest/agile/1.0/board/5", lambda p: respond({"id": 5, "type": "scrum"}))
    fake_jira.on(
        "GET",
        "/rest/agile/1.0/board/5/sprint",
        lambda p: respond(
            {"values": [{"id": 31, "state": "future"}, {"id": 30, "state": "active"}], "isLast": True}
        ),
    )
    fake_jira.on("GET", "/rest/agile/1.0/board/5/sprint/30/issue", lambda p: issues_page(["X-1", "X-2"]))
    fake_jira.on("GET", "/rest/agile/1.0/board/5/sprint/31/issue", lambda p: issues_page(["X-3"]))
    fake_jira.on("GET", "/rest/agile/1.0/board/5/backlog", lambda p: issues_page(["X-4", "X-2"]))

    tickets = _client().issues_for_board("5")

    assert tickets.issues == ("X-1", "X-2", "X-3", "X-4")


def test_unknown_board_type(fake_jira, respond) -> None:
    fake_jira.on("GET", "/rest/agile/1.0/board/9", lambda p: respond({"id": 9, "type": "simple"}))

    with pytest.raises(JiraApiError, match="Unknown board type"):
        _client().issues_for_board("9")


def test_http_error_raises(fake_jira) -> None:
    with pytest.raises(JiraApiError, match="404"):
        _client().get_board("404")


def test_rate_limit_is_retried(fake_jira, issues_page, respond, monkeypatch) -> None:
    sleeps: list[float] = []
    monkeypatch.setattr(jira_module.time, "sleep", sleeps.append)
    responses = [
        respond(None, status_code=429, headers={"Retry-After": "3"}),
        issues_page(["ADE-1"]),
    ]
    fake_jira.on("GET", "/rest/api/2/search", lambda p: responses.pop(0))

    assert _client().search("project = ADE").issues == ("ADE-1",)
    assert sleeps == [3]


def test_comment_posts_body(fake_jira, respond) -> None:
    fake_jira.on("POST", "/rest/api/2/issue/ADE-7/comment", lambda p: respond({"id": "1"}, 201))

    _client().comment_issue("ADE-7", "*Probabilistic Forecast*")

    method, path, _, body = fake_jira.calls[0]
    assert (method, path, body) == ("POST", "/rest/api/2/issue/ADE-7/comment", {"body": "*Probabilistic Forecast*"})



def test_rate_limit_retries_are_capped(fake_jira, respond, monkeypatch) -> None:
    sleeps: list[float] = []
    monkeypatch.setattr(jira_module.time, "sleep", sleeps.append)
    fake_jira.on("GET", "/rest/api/2/search", lambda p: respond(None, status_code=429, headers={"Retry-After": "2"}))
    client = JiraClient(base_url="https://jira.example.com", username="bot", token="t", max_retries=3)

    with pytest.raises(JiraApiError, match="rate limited after 3 retries"):
        client.search("project = ADE")

    assert sleeps == [2, 2, 2]
    assert len(fake_jira.calls) == 4


def test_retry_after_http_date_uses_default_wait(fake_jira, issues_page, respond, monkeypatch) -> None:
    sleeps: list[float] = []
    monkeypatch.setattr(jira_module.time, "sleep", sleeps.append)
    responses = [
        respond(None, status_code=429, headers={"Retry-After": "Wed, 21 Oct 2026 07:28:00 GMT"}),
        issues_page(["ADE-1"]),
    ]
    fake_jira.on("GET", "/rest/api/2/search", lambda p: responses.pop(0))

    assert _client().search("project = ADE").issues == ("ADE-1",)
    assert sleeps == [jira_module.DEFAULT_RETRY_AFTER_S]
