from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Sequence

from probabilistic_forecast.common.seeding import default_index_sampler
from probabilistic_forecast.forecasting.domain.errors import InvalidInputError
from probabilistic_forecast.forecasting.domain.models import IndexSampler

logger = logging.getLogger(__name__)


def _validate(throughput_samples: Sequence[int], ticket_target: float, num_trials: int) -> None:
    if len(throughput_samples) == 0:
        raise InvalidInputError("Throughput history is empty")
    if num_trials <= 0:
        raise InvalidInputError(f"Number of trials must be positive, got {num_trials}")
    if any(s < 0 for s in throughput_samples):
        raise InvalidInputError("Throughput samples must be non-negative")
    if any(not float(s).is_integer() for s in throughput_samples):
        raise InvalidInputError("Throughput samples must be whole numbers of tickets")
    if math.isnan(ticket_target) or math.isinf(ticket_target) or ticket_target < 0:
        raise InvalidInputError(f"Ticket target must be a finite non-negative number, got {ticket_target}")


def simulate(
    throughput_samples: Sequence[int],
    ticket_target: float,
    num_trials: int,
    sampler: IndexSampler | None = None,
) -> tuple[int, ...]:
    """Bootstrap the number of time intervals needed to pass `ticket_target`.

    Each trial resamples historical throughput with replacement until more
    than `ticket_target` tickets are done, and records how many intervals
    that took.
    """
    _validate(throughput_samples, ticket_target, num_trials)

    samples = [int(s) for s in throughput_samples]
    if all(s == 0 for s in samples):
        # Nothing was ever resolved, so no trial could finish.
        logger.warning("All %d throughput samples are zero; returning zero intervals", len(samples))
        return tuple(0 for _ in range(num_trials))

    sampler = sampler or default_index_sampler()
    n = len(samples)

    results: list[int] = []
    for _ in range(num_trials):
        done = 0
        intervals = 0
        while done <= ticket_target:
            done += samples[sampler.draw_index(n)]
            intervals += 1
        results.append(intervals)

    return tuple(results)


@dataclass
class BootstrapSimulator:
    """Monte Carlo completion-time simulator over historical throughput."""

    num_trials: int = 1000
    rng_seed: int | None = None

    def run(self, throughput_samples: Sequence[int], ticket_target: float) -> tuple[int, ...]:
        logger.info(
            "Running %d simulations over %d throughput samples (target %s)",
            self.num_trials,
            len(throughput_samples),
            ticket_target,
        )
        return simulate(
            throughput_samples,
            ticket_target,
            self.num_trials,
            sampler=default_index_sampler(self.rng_seed),
        )
