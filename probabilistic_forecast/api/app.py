from __future__ import annotations

from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field, model_validator

from probabilistic_forecast.adapters.jira.jira_client import JiraApiError
from probabilistic_forecast.common.seeding import default_index_sampler
from probabilistic_forecast.forecasting.domain.errors import InvalidInputError, TicketNotFoundError
from probabilistic_forecast.forecasting.domain.models import ForecastRequest
from probabilistic_forecast.forecasting.reporting.prediction_report import build_report
from probabilistic_forecast.forecasting.services.forecast_service import ForecastService
from probabilistic_forecast.forecasting.simulator.bootstrap import simulate


class SimulateRequest(BaseModel):
    throughput_samples: list[int] = Field(..., description="Tickets resolved per past interval")
    low_ticket_target: int = Field(..., ge=1)
    high_ticket_target: int | None = Field(None, ge=1)
    num_trials: int = Field(1000, ge=1, le=100_000)
    confidence_threshold_percent: float = Field(80.0)
    interval_length_days: float = Field(14.0, gt=0)
    rng_seed: int | None = None

    @model_validator(mode="after")
    def _high_not_below_low(self) -> "SimulateRequest":
        if self.high_ticket_target is not None and self.high_ticket_target < self.low_ticket_target:
            raise ValueError("high_ticket_target must be at least low_ticket_target")
        return self


class ForecastTicketRequest(BaseModel):
    ticket_id: str = Field(..., description="Jira ticket key, e.g. ADE-1234")
    board_id: str
    post_comment: bool = False


class ForecastResponse(BaseModel):
    text: str
    result: dict[str, Any]


def create_app(forecasting: ForecastService | None = None) -> FastAPI:
    app = FastAPI(title="Probabilistic Forecast")

    @app.post("/simulate")
    def run_simulation(req: SimulateRequest) -> dict[str, Any]:
        high = req.high_ticket_target or req.low_ticket_target
        try:
            results = simulate(
                req.throughput_samples,
                high,
                req.num_trials,
                sampler=default_index_sampler(req.rng_seed),
            )
            report = build_report(
                req.low_ticket_target,
                high,
                results,
                req.num_trials,
                req.confidence_threshold_percent,
                req.interval_length_days,
            )
        except InvalidInputError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return {"report": report.to_dict(), "text": report.render()}

    if forecasting is not None:

        @app.post("/forecast", response_model=ForecastResponse)
        def forecast(req: ForecastTicketRequest) -> ForecastResponse:
            try:
                outcome = forecasting.run(
                    ForecastRequest(ticket_id=req.ticket_id, board_id=req.board_id),
                    post_comment=req.post_comment,
                )
            except TicketNotFoundError as exc:
                raise HTTPException(status_code=404, detail=str(exc)) from exc
            except InvalidInputError as exc:
                raise HTTPException(status_code=422, detail=str(exc)) from exc
            except JiraApiError as exc:
                raise HTTPException(status_code=502, detail=str(exc)) from exc
            return ForecastResponse(text=outcome.text(), result=outcome.to_dict())

    return app
