"""
Monte Carlo cost-risk simulation for one project.

Input:  base budget + the project's active risks (probability, cost impact)
Output: distribution of total project cost over N iterations

Each iteration is one plausible outcome of the risk register:
  Iteration 1: risks A and C occur  → budget + 0.93·A + 1.12·C
  Iteration 2: nothing occurs        → budget
  Iteration 3: risk B occurs         → budget + 1.04·B

Method (per iteration, per risk):
  1. u ~ U[0, 1); the risk occurs when u < probability
  2. if it occurs, add cost_impact × v with v ~ U[0.8, 1.2]

Risks are independent Bernoulli trials; there is no correlation model.
Draws are vectorized as (iterations × risks) blocks, chunked so memory
stays bounded for large registers.

Percentiles follow the nearest-rank convention on the ascending costs:
    P(q) = costs[floor(N·q)]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd

from core.config import DEFAULT_ITERATIONS
from core.schema import Risk
from data_prep.records import Records

from .reserves import active_risks

logger = logging.getLogger(__name__)

PERCENTILES: Tuple[float, ...] = (0.50, 0.80, 0.95)
IMPACT_VARIATION: Tuple[float, float] = (0.8, 1.2)

# upper bound on iterations × risks drawn at once
_MAX_BLOCK = 1_000_000

NO_ACTIVE_RISKS_NOTE = "No active risks to simulate; every statistic equals the base budget."


def nearest_rank(sorted_costs: np.ndarray, q: float) -> float:
    """costs[floor(N·q)], clamped to the last index."""
    n = len(sorted_costs)
    idx = min(int(np.floor(n * q)), n - 1)
    return float(sorted_costs[idx])


@dataclass
class CostSimulationResult:
    """
    Output of MonteCarloCostSimulator.simulate().

    `samples` holds every iteration's total cost, sorted ascending.
    """
    base_budget: float
    average_cost: float
    p50: float
    p80: float
    p95: float
    iterations: int
    risk_count: int
    std_dev: float = 0.0
    min_cost: float = 0.0
    max_cost: float = 0.0
    samples: np.ndarray = field(default_factory=lambda: np.array([]), repr=False)
    note: Optional[str] = None

    @property
    def risk_impact(self) -> float:
        return self.average_cost - self.base_budget

    @property
    def is_degenerate(self) -> bool:
        return self.risk_count == 0

    def probability_within(self, amount: float) -> float:
        """Share of iterations whose total cost is at or under `amount`."""
        if len(self.samples) == 0:
            return 1.0 if amount >= self.base_budget else 0.0
        return float(np.searchsorted(self.samples, amount, side="right") / len(self.samples))

    def to_dict(self) -> Dict[str, object]:
        return {
            "average_cost": self.average_cost,
            "p50": self.p50,
            "p80": self.p80,
            "p95": self.p95,
            "iterations": self.iterations,
            "risk_count": self.risk_count,
            "base_budget": self.base_budget,
            "risk_impact": self.risk_impact,
            "std_dev": self.std_dev,
            "min_cost": self.min_cost,
            "max_cost": self.max_cost,
            "note": self.note,
        }

    def summary(self) -> pd.DataFrame:
        """Display table of the cost distribution."""
        rows = [
            {"Metric": "Base Budget", "Value": self.base_budget},
            {"Metric": "Average Cost", "Value": self.average_cost},
            {"Metric": "P50", "Value": self.p50},
            {"Metric": "P80", "Value": self.p80},
            {"Metric": "P95", "Value": self.p95},
            {"Metric": "Std Dev", "Value": self.std_dev},
            {"Metric": "Min", "Value": self.min_cost},
            {"Metric": "Max", "Value": self.max_cost},
            {"Metric": "Risk Impact", "Value": self.risk_impact},
        ]
        df = pd.DataFrame(rows)
        df["Iterations"] = self.iterations
        df["Risks"] = self.risk_count
        return df


class MonteCarloCostSimulator:
    """
    Usage:
        sim = MonteCarloCostSimulator(iterations=10_000, seed=42)
        result = sim.simulate(budget=1_000_000, risks=risks)
        result.p80, result.probability_within(1_100_000)

    With `seed`, every simulate() call starts a new generator from that
    seed, so identical inputs give identical results. seed=None draws fresh
    OS entropy on each call. An injected `rng` is used as given and
    advances across calls; the caller owns its state.
    """

    def __init__(
        self,
        iterations: int = DEFAULT_ITERATIONS,
        seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        if int(iterations) < 1:
            raise ValueError(f"iterations must be at least 1, got {iterations}")
        self.iterations = int(iterations)
        self.seed = seed
        self.rng = rng

    def simulate(self, budget: float, risks: Records) -> CostSimulationResult:
        budget = float(budget or 0.0)
        active = active_risks(risks)
        n = self.iterations

        if not active:
            logger.debug("No active risks; returning degenerate simulation at %.2f", budget)
            return CostSimulationResult(
                base_budget=budget,
                average_cost=budget,
                p50=budget,
                p80=budget,
                p95=budget,
                iterations=n,
                risk_count=0,
                std_dev=0.0,
                min_cost=budget,
                max_cost=budget,
                samples=np.full(n, budget),
                note=NO_ACTIVE_RISKS_NOTE,
            )

        rng = self.rng if self.rng is not None else np.random.default_rng(self.seed)
        costs = np.sort(budget + self._risk_costs(active, rng))
        p50, p80, p95 = (nearest_rank(costs, q) for q in PERCENTILES)

        return CostSimulationResult(
            base_budget=budget,
            average_cost=float(costs.mean()),
            p50=p50,
            p80=p80,
            p95=p95,
            iterations=n,
            risk_count=len(active),
            std_dev=float(costs.std()),
            min_cost=float(costs[0]),
            max_cost=float(costs[-1]),
            samples=costs,
        )

    def _risk_costs(self, risks: List[Risk], rng: np.random.Generator) -> np.ndarray:
        """Total realized risk cost per iteration, shape (iterations,)."""
        prob = np.array([r.probability for r in risks], dtype=float)
        impact = np.array([r.cost_impact for r in risks], dtype=float)
        k = len(risks)
        lo, hi = IMPACT_VARIATION

        out = np.empty(self.iterations, dtype=float)
        chunk = max(_MAX_BLOCK // k, 1)
        for start in range(0, self.iterations, chunk):
            m = min(chunk, self.iterations - start)
            occurred = rng.random((m, k)) < prob
            variation = rng.uniform(lo, hi, size=(m, k))
            out[start:start + m] = (occurred * impact * variation).sum(axis=1)
        return out


def simulate_project_cost(
    budget: float,
    risks: Records,
    *,
    iterations: int = DEFAULT_ITERATIONS,
    seed: Optional[int] = None,
) -> CostSimulationResult:
    return MonteCarloCostSimulator(iterations=iterations, seed=seed).simulate(budget, risks)
