from __future__ import annotations

import math
from typing import Sequence

from probabilistic_forecast.forecasting.domain.errors import InvalidInputError, TicketNotFoundError
from probabilistic_forecast.forecasting.domain.models import TicketTarget


def compute_ratio(numerator_count: float, denominator_count: float) -> float:
    """Return "1 denominator event per X numerator events".

    Zero occurrences of the denominator event (0/0 included) give infinity,
    which the calculator treats as "no correction".
    """
    if denominator_count == 0:
        return math.inf
    return float(numerator_count) / float(denominator_count)


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _correction(low_ticket_target: int, ratio: float, name: str) -> float:
    if math.isnan(ratio) or ratio <= 0:
        raise InvalidInputError(f"{name} must be a positive number or infinity, got {ratio}")
    if math.isinf(ratio):
        return 0.0
    return low_ticket_target / ratio


def calculate_ticket_target(
    bug_ratio: float,
    discovery_ratio: float,
    board_id: str | None,
    target_ticket_id: str | None,
    tickets: Sequence[str] | None,
    user_supplied_target: int,
) -> TicketTarget:
    """Estimate how many tickets must be completed to ship the target ticket.

    The low estimate is the target's position in the priority-ordered backlog
    (inclusive of itself). The high estimate adds the bugs and newly
    discovered tickets expected to appear while that work is being done.
    Without a backlog lookup, `user_supplied_target` is the low estimate.
    """
    if tickets is None or target_ticket_id is None:
        low = int(user_supplied_target)
        if low < 1:
            raise InvalidInputError(f"Ticket target must be at least 1, got {user_supplied_target}")
        above = low - 1
    else:
        try:
            above = list(tickets).index(target_ticket_id)
        except ValueError:
            raise TicketNotFoundError(target_ticket_id, board_id) from None
        low = above + 1

    # Ratios are applied once; tickets spawned by new tickets are not modelled.
    high = round_half_up(
        low
        + _correction(low, bug_ratio, "bug_ratio")
        + _correction(low, discovery_ratio, "discovery_ratio")
    )

    return TicketTarget(
        number_of_tickets_above_target=above,
        low_ticket_target=low,
        high_ticket_target=high,
    )
