"""
Forecast runner: one call that runs every calculator over a portfolio snapshot.

  1. Validate inputs (data_prep.validators); problems are reported, not raised
  2. EVM per active project + portfolio line (pm.aggregator)
  3. Reserves per active project (risk.reserves)
  4. Monte Carlo cost distribution per active project (risk.sampler);
     each project draws from its own generator spawned from config.seed,
     so adding a project does not change the others' draws
  5. Consolidated monthly cash flow (engine.cashflow)

The runner holds no state between calls. The caller decides when inputs
have changed and a new forecast is needed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field, fields
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from core.config import ForecastConfig
from core.schema import Advance, Invoice, Project, ProjectStatus, PurchaseOrder, Risk, WorkItem
from data_prep.records import Collection, ensure_grouped, ensure_grouped_payments, normalize_records
from data_prep.validators import (
    ValidationResult,
    validate_financials,
    validate_risks,
    validate_work_items,
)
from pm.aggregator import consolidate_portfolio_evm
from pm.decisions import PerformanceReport, generate_performance_report
from pm.evm import EVMMetrics
from risk.reserves import ReserveEstimate, ReserveSizer
from risk.sampler import CostSimulationResult, MonteCarloCostSimulator

from .cashflow import CashFlowConsolidator, CashFlowProjection

logger = logging.getLogger(__name__)


@dataclass
class PortfolioSnapshot:
    """
    Input collections for one forecast. Each may be a flat sequence of
    records carrying project ids, or a mapping {project_id: [records]}.
    """
    projects: Collection = None
    tasks: Collection = None
    risks: Collection = None
    purchase_orders: Collection = None
    advances: Collection = None
    invoices: Collection = None

    @classmethod
    def from_mapping(cls, data: Mapping) -> "PortfolioSnapshot":
        aliases = {"purchaseOrders": "purchase_orders", "workItems": "tasks", "work_items": "tasks"}
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            name = aliases.get(key, key)
            if name in known:
                kwargs[name] = value
        return cls(**kwargs)


@dataclass
class PortfolioForecast:
    config: ForecastConfig
    project_evm: pd.DataFrame
    portfolio_evm: EVMMetrics
    reports: Dict[str, PerformanceReport] = field(default_factory=dict)
    reserves: Dict[str, ReserveEstimate] = field(default_factory=dict)
    simulations: Dict[str, CostSimulationResult] = field(default_factory=dict)
    cash_flow: Optional[CashFlowProjection] = None
    validation: ValidationResult = field(default_factory=ValidationResult)

    def project_table(self) -> pd.DataFrame:
        """One row per active project: EVM, reserves, and simulated cost percentiles."""
        df = self.project_evm.copy()
        if df.empty:
            return df
        reserve_rows = {pid: est.to_dict() for pid, est in self.reserves.items()}
        df["contingency_reserve"] = df["project_id"].map(
            lambda pid: reserve_rows[pid]["contingency_reserve"])
        df["management_reserve"] = df["project_id"].map(
            lambda pid: reserve_rows[pid]["management_reserve"])
        df["total_budget"] = df["project_id"].map(lambda pid: reserve_rows[pid]["total_budget"])
        for col in ("average_cost", "p50", "p80", "p95"):
            df[col] = df["project_id"].map(lambda pid, c=col: getattr(self.simulations[pid], c))
        df["health"] = df["project_id"].map(lambda pid: self.reports[pid].overall_health)
        return df


def _risk_generators(seed, n: int) -> List[np.random.Generator]:
    children = np.random.SeedSequence(seed).spawn(n)
    return [np.random.default_rng(child) for child in children]


def run_forecast(
    snapshot: Union[PortfolioSnapshot, Mapping],
    config: ForecastConfig,
) -> PortfolioForecast:
    """
    Run the full portfolio forecast.

    Parameters
    ----------
    snapshot : PortfolioSnapshot or mapping
        Projects plus their tasks, risks, purchase orders, advances, invoices
    config : ForecastConfig
        Reporting date, projection window, Monte Carlo settings, reserve policy

    Returns
    -------
    PortfolioForecast
    """
    if not isinstance(snapshot, PortfolioSnapshot):
        snapshot = PortfolioSnapshot.from_mapping(snapshot)
    cfg = config

    # --- 1. Validation ---
    task_groups = ensure_grouped(snapshot.tasks, WorkItem)
    risk_groups = ensure_grouped(snapshot.risks, Risk)
    order_groups = ensure_grouped(snapshot.purchase_orders, PurchaseOrder)
    all_orders = [po for recs in order_groups.values() for po in recs]
    advance_groups = ensure_grouped_payments(snapshot.advances, Advance, all_orders)
    invoice_groups = ensure_grouped_payments(snapshot.invoices, Invoice, all_orders)

    def _flat(groups):
        return [rec for recs in groups.values() for rec in recs]

    validation = (
        validate_work_items(_flat(task_groups))
        .merge(validate_risks(_flat(risk_groups)))
        .merge(validate_financials(_flat(order_groups), _flat(advance_groups), _flat(invoice_groups)))
    )
    if not validation.is_valid:
        logger.warning("Input data has %d validation errors; forecast continues", len(validation.errors))

    # --- 2. EVM ---
    projects = normalize_records(snapshot.projects, Project)
    active = [p for p in projects if p.status == ProjectStatus.ACTIVE.value and p.id is not None]
    project_evm, portfolio_evm = consolidate_portfolio_evm(
        projects,
        task_groups,
        cfg.reporting_date,
        invoices_by_project=invoice_groups if snapshot.invoices is not None else None,
        purchase_orders_by_project=order_groups,
    )
    evm_by_project = {
        row["project_id"]: EVMMetrics(**{k: row[k] for k in EVMMetrics().to_dict()})
        for row in project_evm.to_dict(orient="records")
    }

    # --- 3-4. Reserves and Monte Carlo ---
    sizer = ReserveSizer(cfg.reserve_policy)
    generators = _risk_generators(cfg.seed, len(active))

    forecast = PortfolioForecast(
        config=cfg,
        project_evm=project_evm,
        portfolio_evm=portfolio_evm,
        validation=validation,
    )
    for project, rng in zip(active, generators):
        risks = risk_groups.get(project.id, [])
        forecast.reserves[project.id] = sizer.size(project.budget, risks)
        simulator = MonteCarloCostSimulator(iterations=cfg.iterations, rng=rng)
        forecast.simulations[project.id] = simulator.simulate(project.budget, risks)
        forecast.reports[project.id] = generate_performance_report(
            evm_by_project.get(project.id, EVMMetrics()),
            project_name=project.name or project.id,
        )

    # --- 5. Cash flow ---
    consolidator = CashFlowConsolidator(
        cfg.projection_start,
        cfg.horizon_months,
        spread=cfg.task_spread,
        payment_offset_days=cfg.payment_offset_days,
    )
    forecast.cash_flow = consolidator.consolidate(
        projects, task_groups, order_groups, advance_groups, invoice_groups,
    )

    logger.info(
        "Forecast for %d active projects at %s: portfolio CPI %.2f, SPI %.2f",
        len(active), cfg.reporting_date.date(), portfolio_evm.cpi, portfolio_evm.spi,
    )
    return forecast

