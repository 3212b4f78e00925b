"""
Roll project-level EVM up to the portfolio.

The PM gets one row per active project and a portfolio line underneath.
The portfolio line is computed from the summed PV/EV/AC/BAC of all active
projects' items, so its indices are ratios of sums:

    portfolio CPI = Σ EV / Σ AC        (not the mean of project CPIs)

A small project running at CPI 0.5 should not weigh as much as a large
one running at 1.1.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Tuple

import pandas as pd

from core.schema import Invoice, Project, ProjectStatus, PurchaseOrder, WorkItem
from data_prep.records import (
    Collection,
    Records,
    ensure_grouped,
    ensure_grouped_payments,
    normalize_records,
)

from .evm import EVMMetrics, EVMMetricsCalculator

logger = logging.getLogger(__name__)


def consolidate_portfolio_evm(
    projects: Records,
    tasks_by_project: Collection,
    reporting_date,
    *,
    invoices_by_project: Collection = None,
    purchase_orders_by_project: Collection = None,
) -> Tuple[pd.DataFrame, EVMMetrics]:
    """
    EVM per active project plus the portfolio total.

    Parameters
    ----------
    projects : sequence of Project records
        Any status; only active projects are included
    tasks_by_project : {project_id: [work items]} or flat work items
    reporting_date : date-like
    invoices_by_project, purchase_orders_by_project : optional
        Used for actual cost when work items carry none

    Returns
    -------
    (per_project_df, portfolio_metrics)
    per_project_df has one row per active project:
        project_id, project_name, budget, item_count, bac, pv, ev, ac, cv, sv,
        cpi, spi, etc, eac, vac, tcpi, percent_complete, percent_spent
    """
    calc = EVMMetricsCalculator(reporting_date)
    active = [
        p for p in normalize_records(projects, Project)
        if p.status == ProjectStatus.ACTIVE.value and p.id is not None
    ]
    tasks = ensure_grouped(tasks_by_project, WorkItem)
    orders = ensure_grouped(purchase_orders_by_project, PurchaseOrder)
    invoices = None
    if invoices_by_project is not None:
        all_orders = [po for recs in orders.values() for po in recs]
        invoices = ensure_grouped_payments(invoices_by_project, Invoice, all_orders)

    rows: List[Dict[str, object]] = []
    totals = {"bac": 0.0, "pv": 0.0, "ev": 0.0, "ac": 0.0}
    n_items = 0
    for project in active:
        m = calc.calculate(
            tasks.get(project.id, []),
            invoices=invoices.get(project.id, []) if invoices is not None else None,
            purchase_orders=orders.get(project.id, []),
        )
        rows.append({
            "project_id": project.id,
            "project_name": project.name,
            "budget": project.budget,
            **m.to_dict(),
        })
        for key in totals:
            totals[key] += getattr(m, key)
        n_items += m.item_count

    if not active:
        logger.info("No active projects in portfolio EVM")

    columns = ["project_id", "project_name", "budget"] + list(EVMMetrics().to_dict())
    per_project = pd.DataFrame(rows, columns=columns)
    portfolio = EVMMetrics.from_totals(**totals, item_count=n_items) if n_items else EVMMetrics()
    return per_project, portfolio
