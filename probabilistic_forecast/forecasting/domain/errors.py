from __future__ import annotations


class ForecastError(Exception):
    """Base type for all forecasting engine failures."""


class TicketNotFoundError(ForecastError, LookupError):
    def __init__(self, ticket_id: str, board_id: str | None = None) -> None:
        self.ticket_id = ticket_id
        self.board_id = board_id
        where = f"board {board_id}" if board_id is not None else "the supplied backlog"
        super().__init__(f"Ticket {ticket_id} not found in ticket list for {where}")


class InvalidInputError(ForecastError, ValueError):
    pass
