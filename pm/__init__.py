"""
PM (Project Manager) outputs: earned value with its portfolio roll-up, decision support and budget position.
"""

from .evm import EVMMetrics, EVMMetricsCalculator, classify_work_items, compute_evm_metrics
from .aggregator import consolidate_portfolio_evm
from .decisions import PerformanceReport, generate_performance_report, indicator_health, variance_health
from .financials import FinancialSummary, summarize_financials

__all__ = [
    "EVMMetrics",
    "EVMMetricsCalculator",
    "classify_work_items",
    "compute_evm_metrics",
    "consolidate_portfolio_evm",
    "PerformanceReport",
    "generate_performance_report",
    "indicator_health",
    "variance_health",
    "FinancialSummary",
    "summarize_financials",
]
