"""
Forecast configuration.

ForecastConfig drives a full portfolio run (engine.runner.run_forecast).
ReservePolicy holds the reserve sizing constants so they are not scattered
through risk.reserves.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Literal, Optional, Tuple

import pandas as pd

from .utils import parse_date

# Projection horizons offered by the consolidated cash-flow view.
SUPPORTED_HORIZONS: Tuple[int, ...] = (6, 12, 18, 24)

# Days between PO approval and the expected cash movement.
PAYMENT_TERMS: Dict[str, int] = {
    "net30": 30,
    "net60": 60,
    "net90": 90,
    "advance": -15,  # paid 15 days before approval date
    "milestone": 0,
}

DEFAULT_ITERATIONS = 10_000


@dataclass(frozen=True)
class ReservePolicy:
    contingency_floor_rate: float = 0.05
    priority_factors: Dict[str, float] = field(
        default_factory=lambda: {"high": 1.5, "medium": 1.2, "low": 1.0}
    )
    default_priority_factor: float = 1.0

    management_base_rate: float = 0.10
    # (active risk count threshold, multiplier), highest threshold first;
    # only the first tier whose threshold is exceeded applies
    count_tiers: Tuple[Tuple[int, float], ...] = ((10, 1.2), (5, 1.1))
    high_priority_threshold: int = 3
    high_priority_multiplier: float = 1.15

    def priority_factor(self, priority: str) -> float:
        return self.priority_factors.get(priority, self.default_priority_factor)


@dataclass(frozen=True)
class ForecastConfig:
    reporting_date: pd.Timestamp
    projection_start: Optional[pd.Timestamp] = None  # defaults to reporting_date
    horizon_months: int = 12

    # Monte Carlo
    iterations: int = DEFAULT_ITERATIONS
    seed: Optional[int] = None  # None -> fresh OS entropy on every run

    # cash flow
    task_spread: Literal["full", "prorated"] = "full"
    payment_terms: str = "milestone"

    reserve_policy: ReservePolicy = field(default_factory=ReservePolicy)

    def __post_init__(self):
        reporting = parse_date(self.reporting_date)
        if reporting is None:
            raise ValueError(f"Invalid reporting_date: {self.reporting_date!r}")
        object.__setattr__(self, "reporting_date", reporting)

        start = parse_date(self.projection_start) if self.projection_start is not None else reporting
        if start is None:
            raise ValueError(f"Invalid projection_start: {self.projection_start!r}")
        object.__setattr__(self, "projection_start", start)

        if self.horizon_months not in SUPPORTED_HORIZONS:
            raise ValueError(
                f"horizon_months must be one of {SUPPORTED_HORIZONS}, got {self.horizon_months}"
            )
        if self.iterations < 1:
            raise ValueError("iterations must be at least 1.")
        if self.task_spread not in ("full", "prorated"):
            raise ValueError(f"Unknown task_spread: {self.task_spread!r}")
        if self.payment_terms not in PAYMENT_TERMS:
            raise ValueError(
                f"Unknown payment_terms {self.payment_terms!r}; expected one of {sorted(PAYMENT_TERMS)}"
            )

    @property
    def payment_offset_days(self) -> int:
        return PAYMENT_TERMS[self.payment_terms]
