from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, Sequence


@dataclass(frozen=True)
class TicketTarget:
    number_of_tickets_above_target: int
    low_ticket_target: int  # includes the target ticket itself
    high_ticket_target: int  # low target inflated by expected bugs and discovery


@dataclass(frozen=True)
class TicketList:
    """Issue keys returned by the tracker, plus the total it reported."""

    total: int
    issues: tuple[str, ...]

    @classmethod
    def of(cls, issues: Sequence[str], total: int | None = None) -> "TicketList":
        keys = tuple(issues)
        return cls(total=len(keys) if total is None else int(total), issues=keys)


@dataclass(frozen=True)
class ForecastRequest:
    ticket_id: str
    board_id: str


class IndexSampler(Protocol):
    def draw_index(self, n: int) -> int:
        """Return a uniformly distributed index in [0, n)."""
        ...


class BacklogSource(Protocol):
    """What the forecast service needs from an issue tracker."""

    def issues_for_board(self, board_id: str) -> TicketList:
        ...

    def fetch_resolved_tickets_per_interval(
        self,
        project_ids: Sequence[str],
        duration_in_days: int,
        num_days_of_history: int,
    ) -> list[TicketList]:
        ...

    def fetch_bug_ratio(self, project_ids: Sequence[str], num_days_of_history: int) -> float:
        ...

    def fetch_discovery_ratio(self, project_ids: Sequence[str], num_days_of_history: int) -> float:
        ...

    def comment_issue(self, issue_key: str, body: str) -> None:
        ...
