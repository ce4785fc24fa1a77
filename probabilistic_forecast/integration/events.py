from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Mapping


@dataclass(frozen=True)
class DomainEvent:
    """Base type for all domain events."""

    occurred_at: datetime


@dataclass(frozen=True)
class ForecastRequested(DomainEvent):
    ticket_id: str
    board_id: str
    post_comment: bool = False


@dataclass(frozen=True)
class ForecastComputed(DomainEvent):
    ticket_id: str
    board_id: str
    result: Mapping[str, Any]
    text: str


@dataclass(frozen=True)
class ForecastFailed(DomainEvent):
    ticket_id: str
    board_id: str
    error: str
