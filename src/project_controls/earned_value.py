from __future__ import annotations

import logging

from .project_models import EVMMetrics, EVMSnapshot, Number

logger = logging.getLogger(__name__)

UNDER_BUDGET = "Under Budget"
OVER_BUDGET = "Over Budget"
AHEAD_OF_SCHEDULE = "Ahead of Schedule"
BEHIND_SCHEDULE = "Behind Schedule"


def compute_evm(snapshot: EVMSnapshot) -> EVMMetrics:
    """
    Derive earned value metrics from a cost snapshot.

    A zero divisor never raises: SPI, CPI and TCPI fall back to 0, while EAC
    falls back to BAC when CPI is 0 (no cost incurred yet, budget assumed to
    hold). Inputs are taken as given, negative values included.
    """

    bac = snapshot.budget_at_completion
    pv = snapshot.planned_value
    ev = snapshot.earned_value
    ac = snapshot.actual_cost

    spi = ev / pv if pv != 0 else 0
    cpi = ev / ac if ac != 0 else 0

    eac = bac / cpi if cpi != 0 else bac
    remaining_budget = bac - ac
    tcpi = (bac - ev) / remaining_budget if remaining_budget != 0 else 0

    metrics = EVMMetrics(
        schedule_variance=ev - pv,
        cost_variance=ev - ac,
        schedule_performance_index=spi,
        cost_performance_index=cpi,
        estimate_at_completion=eac,
        estimate_to_complete=eac - ac,
        variance_at_completion=bac - eac,
        to_complete_performance_index=tcpi,
    )
    logger.debug("EVM computed: CPI=%s SPI=%s EAC=%s", cpi, spi, eac)
    return metrics


def snapshot_from_progress(
    budget_at_completion: Number,
    planned_percent: Number,
    actual_percent: Number,
    actual_cost: Number,
) -> EVMSnapshot:
    """Build a snapshot from planned and actual percent complete (0-100)."""

    return EVMSnapshot(
        budget_at_completion=budget_at_completion,
        planned_value=budget_at_completion * (planned_percent / 100),
        earned_value=budget_at_completion * (actual_percent / 100),
        actual_cost=actual_cost,
    )


def cost_status(metrics: EVMMetrics) -> str:
    return UNDER_BUDGET if metrics.cost_performance_index >= 1 else OVER_BUDGET


def schedule_status(metrics: EVMMetrics) -> str:
    return AHEAD_OF_SCHEDULE if metrics.schedule_performance_index >= 1 else BEHIND_SCHEDULE
