"""
PM decision support: health bands and stress flags on top of EVM metrics.

Translates an EVMMetrics snapshot into answers a PM can act on:
  Q1: "Are we spending efficiently?"     → CPI band, COST_OVERRUN
  Q2: "Are we on schedule?"              → SPI band, SCHEDULE_SLIP
  Q3: "Will we finish within budget?"    → VAC sign, BUDGET_AT_RISK
  Q4: "Can we still recover?"            → TCPI, TCPI_UNREACHABLE
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import pandas as pd

from .evm import EVMMetrics

GOOD = "good"
WARNING = "warning"
CRITICAL = "critical"

# flag thresholds
CPI_FLOOR = 0.9
SPI_FLOOR = 0.9
TCPI_CEILING = 1.1


def indicator_health(value: float) -> str:
    """Band for a performance index (CPI, SPI): 1.0 is on target."""
    if value >= 1.0:
        return GOOD
    if value >= 0.9:
        return WARNING
    return CRITICAL


def variance_health(value: float) -> str:
    """Band for a variance (CV, SV, VAC): negative is bad."""
    return GOOD if value >= 0 else CRITICAL


@dataclass
class PerformanceReport:
    """Structured PM performance output for one project or the portfolio."""
    project_name: str
    metrics: EVMMetrics

    cpi_health: str
    spi_health: str
    cv_health: str
    sv_health: str
    vac_health: str

    flags: List[str] = field(default_factory=list)

    @property
    def overall_health(self) -> str:
        bands = [self.cpi_health, self.spi_health, self.vac_health]
        if CRITICAL in bands:
            return CRITICAL
        if WARNING in bands:
            return WARNING
        return GOOD

    def to_dataframe(self) -> pd.DataFrame:
        """Convert to a display-friendly table."""
        d = self.metrics.to_display()
        rows = [
            {"Metric": "Project", "Value": self.project_name, "Health": self.overall_health},
            {"Metric": "Budget at Completion (BAC)", "Value": f"{d['bac']:,.0f}", "Health": ""},
            {"Metric": "Planned Value (PV)", "Value": f"{d['pv']:,.0f}", "Health": ""},
            {"Metric": "Earned Value (EV)", "Value": f"{d['ev']:,.0f}", "Health": ""},
            {"Metric": "Actual Cost (AC)", "Value": f"{d['ac']:,.0f}", "Health": ""},
            {"Metric": "Cost Variance (CV)", "Value": f"{d['cv']:,.0f}", "Health": self.cv_health},
            {"Metric": "Schedule Variance (SV)", "Value": f"{d['sv']:,.0f}", "Health": self.sv_health},
            {"Metric": "CPI", "Value": f"{d['cpi']:.2f}", "Health": self.cpi_health},
            {"Metric": "SPI", "Value": f"{d['spi']:.2f}", "Health": self.spi_health},
            {"Metric": "Estimate to Complete (ETC)", "Value": f"{d['etc']:,.0f}", "Health": ""},
            {"Metric": "Estimate at Completion (EAC)", "Value": f"{d['eac']:,.0f}", "Health": ""},
            {"Metric": "Variance at Completion (VAC)", "Value": f"{d['vac']:,.0f}", "Health": self.vac_health},
            {"Metric": "TCPI", "Value": f"{d['tcpi']:.2f}", "Health": ""},
            {"Metric": "% Complete", "Value": f"{d['percent_complete']:.1f}%", "Health": ""},
            {"Metric": "% Spent", "Value": f"{d['percent_spent']:.1f}%", "Health": ""},
        ]
        if self.flags:
            rows.append({"Metric": "FLAGS", "Value": " | ".join(self.flags), "Health": ""})
        return pd.DataFrame(rows)


def generate_performance_report(
    metrics: EVMMetrics,
    *,
    project_name: str = "Unknown Project",
) -> PerformanceReport:
    """
    Generate a PM performance report from EVM metrics.

    Parameters
    ----------
    metrics : EVMMetrics
        Output of pm.evm.EVMMetricsCalculator.calculate() or the portfolio
        line from pm.aggregator.consolidate_portfolio_evm()
    project_name : str
        Identifier for the report
    """
    m = metrics
    flags = []
    if m.cpi < CPI_FLOOR:
        flags.append(f"COST_OVERRUN: CPI {m.cpi:.2f} below {CPI_FLOOR}")
    if m.spi < SPI_FLOOR:
        flags.append(f"SCHEDULE_SLIP: SPI {m.spi:.2f} below {SPI_FLOOR}")
    if m.vac < 0:
        flags.append(f"BUDGET_AT_RISK: forecast overrun of {-m.vac:,.0f} at completion")
    if m.tcpi > TCPI_CEILING:
        flags.append(f"TCPI_UNREACHABLE: remaining work needs CPI {m.tcpi:.2f}")

    return PerformanceReport(
        project_name=project_name,
        metrics=m,
        cpi_health=indicator_health(m.cpi),
        spi_health=indicator_health(m.spi),
        cv_health=variance_health(m.cv),
        sv_health=variance_health(m.sv),
        vac_health=variance_health(m.vac),
        flags=flags,
    )
