"""
Risk: register analytics plus reserve sizing and Monte Carlo cost simulation.
"""

from .register import (
    analyze_risk_matrix,
    expected_monetary_value,
    mitigation_recommendations,
    priority_from_score,
    risk_exposure,
    risk_score,
    summarize_risk_register,
)
from .reserves import ReserveEstimate, ReserveSizer, active_risks
from .sampler import CostSimulationResult, MonteCarloCostSimulator, simulate_project_cost

__all__ = [
    "analyze_risk_matrix",
    "expected_monetary_value",
    "mitigation_recommendations",
    "priority_from_score",
    "risk_exposure",
    "risk_score",
    "summarize_risk_register",
    "ReserveEstimate",
    "ReserveSizer",
    "active_risks",
    "CostSimulationResult",
    "MonteCarloCostSimulator",
    "simulate_project_cost",
]
