"""
Forecast engine: monthly cash-flow consolidation + portfolio forecast runner.
"""

from .cashflow import CashFlowConsolidator, CashFlowProjection, project_cash_flow
from .runner import PortfolioForecast, PortfolioSnapshot, run_forecast
from .spreading import FullCostPerMonth, ProRatedByDays, TaskCostSpread, get_spread

__all__ = [
    "CashFlowConsolidator",
    "CashFlowProjection",
    "project_cash_flow",
    "PortfolioForecast",
    "PortfolioSnapshot",
    "run_forecast",
    "FullCostPerMonth",
    "ProRatedByDays",
    "TaskCostSpread",
    "get_spread",
]
