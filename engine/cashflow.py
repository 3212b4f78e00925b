"""
Monthly cash-flow consolidation across active projects.

Three parallel expense curves per calendar month:
  1. planned_expense    task cost allocated by the spreading policy
                        (engine.spreading; full cost per overlapped month by default)
  2. committed_expense  approved/delivered purchase orders, by approval date
                        (falling back to the order date), shifted by payment terms
  3. real_expense       paid advances + paid invoices, by payment date

net_flow = planned_expense - real_expense (plan against cash actually paid,
not against commitments). cumulative_planned is the running planned total.

Month windows run from the first to the last day of each calendar month,
both inclusive, starting with the month containing the projection start.
Records without a usable date are left out of the curves and logged.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Dict, List, Optional, Union

import numpy as np
import pandas as pd

from core.config import PAYMENT_TERMS, SUPPORTED_HORIZONS
from core.schema import (
    COMMITTED_PO_STATUSES,
    Advance,
    Invoice,
    PaymentStatus,
    Project,
    ProjectStatus,
    PurchaseOrder,
    WorkItem,
)
from core.utils import month_windows, parse_date
from data_prep.records import (
    Collection,
    Records,
    ensure_grouped,
    ensure_grouped_payments,
    normalize_records,
    records_to_frame,
)

from .spreading import TaskCostSpread, get_spread

logger = logging.getLogger(__name__)

CURVE_FIELDS = ("planned_expense", "committed_expense", "real_expense", "net_flow")
MONTH_COLUMNS = [
    "month",
    "month_key",
    "month_label",
    "month_start",
    "planned_expense",
    "committed_expense",
    "real_expense",
    "net_flow",
    "cumulative_planned",
]


@dataclass
class CashFlowProjection:
    """
    Output of the consolidator: one row per month plus derived totals.

    Totals are always computed from `months`, so they equal the per-field
    sums of the monthly values.
    """
    months: pd.DataFrame
    start_date: pd.Timestamp
    horizon_months: int
    project_count: int = 0
    spread: str = "full"

    @property
    def totals(self) -> Dict[str, float]:
        return {f: float(self.months[f].sum()) for f in CURVE_FIELDS}

    @property
    def metrics(self) -> Dict[str, float]:
        m = self.months
        n = len(m)
        totals = self.totals
        return {
            "months": n,
            "positive_months": int((m["net_flow"] > 0).sum()),
            "negative_months": int((m["net_flow"] < 0).sum()),
            "average_planned_expense": totals["planned_expense"] / n if n else 0.0,
            "average_committed_expense": totals["committed_expense"] / n if n else 0.0,
            "average_real_expense": totals["real_expense"] / n if n else 0.0,
            "max_cumulative": float(m["cumulative_planned"].max()) if n else 0.0,
            "min_cumulative": float(m["cumulative_planned"].min()) if n else 0.0,
        }

    def to_records(self) -> List[Dict[str, object]]:
        return self.months.to_dict(orient="records")


def empty_months() -> pd.DataFrame:
    df = pd.DataFrame({c: pd.Series(dtype=float) for c in MONTH_COLUMNS})
    df["month"] = df["month"].astype(int)
    df["month_key"] = df["month_key"].astype(object)
    df["month_label"] = df["month_label"].astype(object)
    df["month_start"] = pd.to_datetime(df["month_start"])
    return df


class CashFlowConsolidator:
    """
    Usage:
        cf = CashFlowConsolidator("2025-01-01", horizon_months=12)
        proj = cf.consolidate(projects, tasks_by_project, pos_by_project,
                              advances_by_project, invoices_by_project)
        proj.months, proj.totals, proj.metrics

    Per-project collections may be given as {project_id: [records]} or as
    flat sequences whose records carry a project id. Flat advances and
    invoices without a project id inherit it from their purchase order.
    """

    def __init__(
        self,
        start_date,
        horizon_months: int = 12,
        spread: Union[str, TaskCostSpread] = "full",
        payment_offset_days: int = 0,
    ):
        start = parse_date(start_date)
        if start is None:
            raise ValueError(f"Invalid projection start date: {start_date!r}")
        if horizon_months not in SUPPORTED_HORIZONS:
            raise ValueError(
                f"horizon_months must be one of {SUPPORTED_HORIZONS}, got {horizon_months}"
            )
        self.start_date = start
        self.horizon_months = int(horizon_months)
        self.spread = get_spread(spread) if isinstance(spread, str) else spread
        self.payment_offset_days = int(payment_offset_days)
        self.windows = month_windows(start, self.horizon_months)

    # ------------------------------------------------------------------
    # Portfolio
    # ------------------------------------------------------------------

    def consolidate(
        self,
        projects: Records,
        tasks_by_project: Collection = None,
        purchase_orders_by_project: Collection = None,
        advances_by_project: Collection = None,
        invoices_by_project: Collection = None,
    ) -> CashFlowProjection:
        active = [
            p for p in normalize_records(projects, Project)
            if p.status == ProjectStatus.ACTIVE.value and p.id is not None
        ]
        if not active:
            logger.info("No active projects; returning an empty cash-flow projection")
            return CashFlowProjection(
                months=empty_months(),
                start_date=self.start_date,
                horizon_months=self.horizon_months,
                project_count=0,
                spread=self.spread.name,
            )

        tasks = ensure_grouped(tasks_by_project, WorkItem)
        orders = ensure_grouped(purchase_orders_by_project, PurchaseOrder)
        all_orders = [po for recs in orders.values() for po in recs]
        advances = ensure_grouped_payments(advances_by_project, Advance, all_orders)
        invoices = ensure_grouped_payments(invoices_by_project, Invoice, all_orders)

        ids = [p.id for p in active]
        return self.build(
            _select(tasks, ids),
            _select(orders, ids),
            _select(advances, ids),
            _select(invoices, ids),
            project_count=len(active),
        )

    # ------------------------------------------------------------------
    # Curves
    # ------------------------------------------------------------------

    def build(
        self,
        tasks: Records,
        purchase_orders: Records,
        advances: Records,
        invoices: Records,
        *,
        project_count: int = 1,
    ) -> CashFlowProjection:
        """Monthly table for already-selected records (no project filtering)."""
        planned = self.planned_curve(tasks)
        committed = self.committed_curve(purchase_orders)
        real = self.real_curve(advances, invoices)

        rows = []
        cumulative = 0.0
        for k, (begin, _end) in enumerate(self.windows):
            cumulative += planned[k]
            rows.append({
                "month": k + 1,
                "month_key": begin.strftime("%Y-%m"),
                "month_label": begin.strftime("%B %Y"),
                "month_start": begin,
                "planned_expense": float(planned[k]),
                "committed_expense": float(committed[k]),
                "real_expense": float(real[k]),
                "net_flow": float(planned[k] - real[k]),
                "cumulative_planned": float(cumulative),
            })
            logger.debug(
                "%s planned=%.2f committed=%.2f real=%.2f",
                rows[-1]["month_key"], planned[k], committed[k], real[k],
            )

        return CashFlowProjection(
            months=pd.DataFrame(rows, columns=MONTH_COLUMNS),
            start_date=self.start_date,
            horizon_months=self.horizon_months,
            project_count=project_count,
            spread=self.spread.name,
        )

    def planned_curve(self, tasks: Records) -> np.ndarray:
        df = records_to_frame(tasks, WorkItem)
        undated = df["start_date"].isna() | (df["end_date"].isna() & ~df["is_milestone"].astype(bool))
        if undated.any():
            logger.warning("%d tasks without dates left out of planned expense", int(undated.sum()))
        return self.spread.allocate(df, self.windows).sum(axis=0)

    def committed_curve(self, purchase_orders: Records) -> np.ndarray:
        df = records_to_frame(purchase_orders, PurchaseOrder)
        df = df[df["status"].isin(COMMITTED_PO_STATUSES)]
        effective = df["approval_date"].fillna(df["date"])

        n_undated = int(effective.isna().sum())
        if n_undated:
            logger.warning("%d approved/delivered purchase orders without a date left out of committed expense",
                           n_undated)
        if self.payment_offset_days:
            effective = effective + pd.Timedelta(days=self.payment_offset_days)
        return self._sum_by_window(effective, df["total_amount"])

    def real_curve(self, advances: Records, invoices: Records) -> np.ndarray:
        total = np.zeros(len(self.windows))
        for label, recs, model in (("advances", advances, Advance), ("invoices", invoices, Invoice)):
            df = records_to_frame(recs, model)
            df = df[df["status"] == PaymentStatus.PAID.value]
            n_undated = int(df["payment_date"].isna().sum())
            if n_undated:
                logger.warning("%d paid %s without a payment date left out of real expense",
                               n_undated, label)
            total += self._sum_by_window(df["payment_date"], df["amount"])
        return total

    def _sum_by_window(self, dates: pd.Series, amounts: pd.Series) -> np.ndarray:
        out = np.zeros(len(self.windows))
        for k, (begin, end) in enumerate(self.windows):
            in_month = (dates >= begin) & (dates <= end)
            out[k] = float(amounts[in_month].sum())
        return out


def _select(grouped: Dict[str, List], project_ids: List[str]) -> List:
    return [rec for pid in project_ids for rec in grouped.get(pid, [])]


def project_cash_flow(
    project,
    tasks: Records = None,
    purchase_orders: Records = None,
    advances: Records = None,
    invoices: Records = None,
    *,
    start_date=None,
    horizon_months: int = 12,
    payment_terms: str = "milestone",
    spread: Union[str, TaskCostSpread] = "full",
) -> CashFlowProjection:
    """
    Cash-flow table for a single project, whatever its status.

    Parameters
    ----------
    project : Project or mapping
        The project being viewed (used for logging only; records are not
        filtered by project id)
    start_date : date-like, optional
        Projection start; defaults to the first day of the current month
    payment_terms : str
        One of core.config.PAYMENT_TERMS; shifts committed dates by the
        number of days between approval and payment
    """
    if payment_terms not in PAYMENT_TERMS:
        raise ValueError(f"Unknown payment_terms {payment_terms!r}; expected one of {sorted(PAYMENT_TERMS)}")
    if start_date is None:
        start_date = pd.Timestamp.today().normalize()

    consolidator = CashFlowConsolidator(
        start_date,
        horizon_months,
        spread=spread,
        payment_offset_days=PAYMENT_TERMS[payment_terms],
    )
    name: Optional[str] = project.get("name") if isinstance(project, Mapping) else getattr(project, "name", None)
    logger.debug("Cash flow for project %s from %s (%d months, %s terms)",
                 name, consolidator.start_date.date(), horizon_months, payment_terms)
    return consolidator.build(tasks, purchase_orders, advances, invoices, project_count=1)
