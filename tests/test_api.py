from __future__ import annotations

from fastapi.testclient import TestClient

from probabilistic_forecast.api.app import create_app
from probabilistic_forecast.config import ForecastConfig
from probabilistic_forecast.forecasting.domain.models import TicketList
from probabilistic_forecast.forecasting.services.forecast_service import ForecastService


class _Backlog:
    def __init__(self) -> None:
        self.comments: list[str] = []

    def issues_for_board(self, board_id: str) -> TicketList:
        return TicketList.of(["ADE-1", "ADE-2", "ADE-3"])

    def fetch_resolved_tickets_per_interval(self, project_ids, duration_in_days, num_days_of_history):
        return [TicketList.of(["ADE-0"] * 2)]

    def fetch_bug_ratio(self, project_ids, num_days_of_history) -> float:
        return 3.0

    def fetch_discovery_ratio(self, project_ids, num_days_of_history) -> float:
        return 3.0

    def comment_issue(self, issue_key: str, body: str) -> None:
        self.comments.append(issue_key)


def test_simulate_endpoint() -> None:
    client = TestClient(create_app())

    resp = client.post(
        "/simulate",
        json={
            "throughput_samples": [10],
            "low_ticket_target": 25,
            "num_trials": 40,
            "interval_length_days": 7,
        },
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["report"]["result_above_threshold"] == 3
    assert body["report"]["days_above_threshold"] == 21
    assert body["text"].endswith("will take no more than 21 days to complete.")


def test_simulate_rejects_empty_history() -> None:
    client = TestClient(create_app())

    resp = client.post("/simulate", json={"throughput_samples": [], "low_ticket_target": 5})

    assert resp.status_code == 422


def test_forecast_endpoint_only_with_service() -> None:
    assert TestClient(create_app()).post("/forecast", json={}).status_code == 404

    backlog = _Backlog()
    service = ForecastService(source=backlog, settings=ForecastConfig(num_simulations=10))
    client = TestClient(create_app(service))

    ok = client.post("/forecast", json={"ticket_id": "ADE-3", "board_id": "74", "post_comment": True})
    assert ok.status_code == 200
    assert ok.json()["result"]["target"] == {
        "number_of_tickets_above_target": 2,
        "low_ticket_target": 3,
        "high_ticket_target": 5,
    }
    assert backlog.comments == ["ADE-3"]

    missing = client.post("/forecast", json={"ticket_id": "ADE-9", "board_id": "74"})
    assert missing.status_code == 404


class _EmptyBacklog(_Backlog):
    def issues_for_board(self, board_id: str) -> TicketList:
        return TicketList.of([])

    def fetch_bug_ratio(self, project_ids, num_days_of_history) -> float:
        if not project_ids:
            raise ValueError("At least one project id is required")
        return 3.0


def test_forecast_on_empty_board_is_not_found() -> None:
    client = TestClient(create_app(ForecastService(source=_EmptyBacklog())))

    resp = client.post("/forecast", json={"ticket_id": "ADE-1", "board_id": "74"})

    assert resp.status_code == 404
    assert "ADE-1 not found" in resp.json()["detail"]


def test_simulate_rejects_high_target_below_low_target() -> None:
    client = TestClient(create_app())

    resp = client.post(
        "/simulate",
        json={"throughput_samples": [3, 5], "low_ticket_target": 25, "high_ticket_target": 5},
    )

    assert resp.status_code == 422
