from __future__ import annotations

import math
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Sequence

from probabilistic_forecast.forecasting.domain.errors import InvalidInputError

UNKNOWN = "unknown"


@dataclass(frozen=True)
class OutcomeLine:
    intervals: int
    days: float
    simulations: int
    percentage: float
    cumulative_percentage: float

    def render(self) -> str:
        plural = "" if self.simulations == 1 else "s"
        return (
            f"{_fmt_number(self.days)} days, "
            f"{math.floor(self.cumulative_percentage)}% confidence "
            f"({self.simulations} simulation{plural})"
        )


@dataclass(frozen=True)
class PredictionReport:
    """Empirical distribution of simulated completion times.

    `lines` are ordered by ascending number of intervals. The threshold
    result is the fewest intervals whose cumulative confidence reaches
    `confidence_threshold_percent`, or None if it is never reached.
    """

    low_ticket_target: int
    high_ticket_target: int
    num_trials: int
    confidence_threshold_percent: float
    interval_length_days: float
    lines: tuple[OutcomeLine, ...]
    result_above_threshold: int | None

    @property
    def threshold_line(self) -> OutcomeLine | None:
        if self.result_above_threshold is None:
            return None
        for line in self.lines:
            if line.intervals == self.result_above_threshold:
                return line
        return None

    @property
    def days_above_threshold(self) -> float | None:
        line = self.threshold_line
        return None if line is None else line.days

    def percentages(self) -> dict[int, float]:
        return {line.intervals: line.percentage for line in self.lines}

    def cumulative_percentages(self) -> dict[int, float]:
        return {line.intervals: line.cumulative_percentage for line in self.lines}

    def title(self) -> str:
        return (
            f"Amount of time required to ship {self.low_ticket_target} to "
            f"{self.high_ticket_target} tickets (and the number of simulations "
            f"that arrived at that result):"
        )

    def summary(self) -> str:
        line = self.threshold_line
        if line is None:
            confidence = UNKNOWN
            days = UNKNOWN
        else:
            confidence = str(math.floor(line.cumulative_percentage))
            days = _fmt_number(line.days)
        return (
            f"We are {confidence}% confident all {self.low_ticket_target} to "
            f"{self.high_ticket_target} tickets will take no more than {days} days to complete."
        )

    def render(self) -> str:
        body = "\n".join(line.render() for line in self.lines)
        return f"{self.title()}\n\n{body}\n\n{self.summary()}"

    def to_dict(self) -> dict[str, Any]:
        out = asdict(self)
        out["lines"] = [asdict(line) for line in self.lines]
        out["days_above_threshold"] = self.days_above_threshold
        return out


def _fmt_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return f"{value:g}"


def build_report(
    low_ticket_target: int,
    high_ticket_target: int,
    simulation_result: Sequence[int],
    num_trials: int,
    confidence_threshold_percent: float,
    interval_length_days: float,
) -> PredictionReport:
    if num_trials <= 0:
        raise InvalidInputError(f"Number of trials must be positive, got {num_trials}")

    # Trials per distinct number of intervals, e.g. {17: 3, 18: 5, 19: 2}.
    counts = Counter(int(r) for r in simulation_result)

    lines: list[OutcomeLine] = []
    running_count = 0
    result_above_threshold: int | None = None

    for intervals in sorted(counts):
        percentage = counts[intervals] / num_trials * 100
        # Share of trials finishing in this many intervals or fewer.
        running_count += counts[intervals]
        cumulative = running_count / num_trials * 100

        # Keep the first (smallest) outcome that passes the threshold.
        if result_above_threshold is None and cumulative >= confidence_threshold_percent:
            result_above_threshold = intervals

        lines.append(
            OutcomeLine(
                intervals=intervals,
                days=intervals * interval_length_days,
                simulations=counts[intervals],
                percentage=percentage,
                cumulative_percentage=cumulative,
            )
        )

    return PredictionReport(
        low_ticket_target=int(low_ticket_target),
        high_ticket_target=int(high_ticket_target),
        num_trials=int(num_trials),
        confidence_threshold_percent=float(confidence_threshold_percent),
        interval_length_days=interval_length_days,
        lines=tuple(lines),
        result_above_threshold=result_above_threshold,
    )
