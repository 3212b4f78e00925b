"""
Earned-value metrics for a collection of work items.

Flow:
  1. Work items are normalized into one DataFrame (data_prep.records).
  2. Per item: planned value time-phased to the reporting date, earned value
     from reported progress, actual cost from the item or its paid invoices.
  3. Sums feed the derived indicators (CV, SV, CPI, SPI, ETC, EAC, VAC, TCPI).

Every ratio has an explicit zero-denominator guard:
  CPI = SPI = 1 (neutral), TCPI = 0, percentages = 0.
Full precision is kept on EVMMetrics; to_display() does the rounding.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Dict

import numpy as np
import pandas as pd

from core.schema import Invoice, PaymentStatus, PurchaseOrder, WorkItem
from core.utils import days_between, parse_date, round_half_up
from data_prep.records import Records, records_to_frame

logger = logging.getLogger(__name__)

MONEY_FIELDS = ("bac", "pv", "ev", "ac", "cv", "sv", "etc", "eac", "vac")
INDEX_FIELDS = ("cpi", "spi", "tcpi")
PERCENT_FIELDS = ("percent_complete", "percent_spent")


@dataclass(frozen=True)
class EVMMetrics:
    bac: float = 0.0
    pv: float = 0.0
    ev: float = 0.0
    ac: float = 0.0
    cv: float = 0.0
    sv: float = 0.0
    cpi: float = 1.0
    spi: float = 1.0
    etc: float = 0.0
    eac: float = 0.0
    vac: float = 0.0
    tcpi: float = 0.0
    percent_complete: float = 0.0
    percent_spent: float = 0.0
    item_count: int = 0

    @classmethod
    def from_totals(cls, bac: float, pv: float, ev: float, ac: float, *, item_count: int = 0) -> "EVMMetrics":
        """Derive the full indicator set from the four base sums."""
        cpi = ev / ac if ac > 0 else 1.0
        spi = ev / pv if pv > 0 else 1.0
        etc = (bac - ev) / cpi if cpi > 0 else bac - ev
        eac = ac + etc
        tcpi = (bac - ev) / (bac - ac) if (bac - ac) != 0 else 0.0
        return cls(
            bac=float(bac),
            pv=float(pv),
            ev=float(ev),
            ac=float(ac),
            cv=float(ev - ac),
            sv=float(ev - pv),
            cpi=float(cpi),
            spi=float(spi),
            etc=float(etc),
            eac=float(eac),
            vac=float(bac - eac),
            tcpi=float(tcpi),
            percent_complete=float(ev / bac * 100) if bac > 0 else 0.0,
            percent_spent=float(ac / bac * 100) if bac > 0 else 0.0,
            item_count=int(item_count),
        )

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    def to_display(self) -> Dict[str, float]:
        """Money to whole units, indices to 2 decimals, percentages to 1 decimal."""
        out: Dict[str, float] = {}
        for name in MONEY_FIELDS:
            out[name] = round_half_up(getattr(self, name), 0)
        for name in INDEX_FIELDS:
            out[name] = round_half_up(getattr(self, name), 2)
        for name in PERCENT_FIELDS:
            out[name] = round_half_up(getattr(self, name), 1)
        out["item_count"] = self.item_count
        return out


class EVMMetricsCalculator:
    """
    Usage:
        calc = EVMMetricsCalculator("2025-01-16")
        metrics = calc.calculate(tasks, invoices=invoices, purchase_orders=orders)
        metrics.to_display()
    """

    def __init__(self, reporting_date):
        ts = parse_date(reporting_date)
        if ts is None:
            raise ValueError(f"Invalid reporting_date: {reporting_date!r}")
        self.reporting_date = ts

    def breakdown(
        self,
        work_items: Records,
        *,
        invoices: Records = None,
        purchase_orders: Records = None,
    ) -> pd.DataFrame:
        """
        One row per work item with its planned, earned and actual values.

        Returns
        -------
        DataFrame with columns:
            id, project_id, cost, progress, start_date, end_date,
            pv, ev, ac, ac_reported, has_dates
        """
        df = records_to_frame(work_items, WorkItem)
        out = df[["id", "project_id", "cost", "progress", "start_date", "end_date"]].copy()
        if df.empty:
            for col in ("pv", "ev", "ac"):
                out[col] = pd.Series(dtype=float)
            out["ac_reported"] = pd.Series(dtype=bool)
            out["has_dates"] = pd.Series(dtype=bool)
            return out

        cost = df["cost"].to_numpy(dtype=float)
        out["pv"] = cost * self._planned_fraction(df["start_date"], df["end_date"])
        out["ev"] = cost * df["progress"].to_numpy(dtype=float) / 100.0
        out["ac"] = self._actual_costs(df, invoices, purchase_orders)
        out["ac_reported"] = df["actual_cost"].notna().to_numpy()
        out["has_dates"] = (df["start_date"].notna() & df["end_date"].notna()).to_numpy()

        n_undated = int((~out["has_dates"]).sum())
        if n_undated:
            logger.warning("%d work items without start/end date excluded from PV", n_undated)
        return out

    def calculate(
        self,
        work_items: Records,
        *,
        invoices: Records = None,
        purchase_orders: Records = None,
    ) -> EVMMetrics:
        # read twice below (linked and unlinked invoices)
        invoices = list(invoices) if invoices is not None else None
        purchase_orders = list(purchase_orders) if purchase_orders is not None else None

        items = self.breakdown(work_items, invoices=invoices, purchase_orders=purchase_orders)
        if items.empty:
            return EVMMetrics()

        ac = float(items["ac"].sum())
        if invoices is not None and not items["ac_reported"].any():
            ac += self._unlinked_paid_invoices(items, invoices, purchase_orders)

        return EVMMetrics.from_totals(
            bac=float(items["cost"].sum()),
            pv=float(items["pv"].sum()),
            ev=float(items["ev"].sum()),
            ac=ac,
            item_count=len(items),
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _planned_fraction(self, start: pd.Series, end: pd.Series) -> np.ndarray:
        """
        Share of each item's cost planned by the reporting date, in [0, 1].

        0 before the start, 1 on or after the end, linear by elapsed days in
        between. Items missing a date get 0.
        """
        rep = self.reporting_date
        total = days_between(start, end).to_numpy(dtype=float)
        elapsed = days_between(start, rep).to_numpy(dtype=float)

        fraction = np.divide(elapsed, total, out=np.ones_like(total), where=total > 0)
        fraction = np.clip(fraction, 0.0, 1.0)
        fraction = np.where((start > rep).to_numpy(), 0.0, fraction)
        fraction = np.where((end <= rep).to_numpy(), 1.0, fraction)

        dated = (start.notna() & end.notna()).to_numpy()
        return np.where(dated, fraction, 0.0)

    @staticmethod
    def _paid_invoices_by_package(invoices: Records, purchase_orders: Records) -> pd.DataFrame:
        """Paid invoices with the work package resolved through their purchase order."""
        inv = records_to_frame(invoices, Invoice)
        inv = inv[inv["status"] == PaymentStatus.PAID.value]
        po = records_to_frame(purchase_orders, PurchaseOrder)
        package_of = dict(zip(po["id"], po["work_package_id"]))
        out = inv[["purchase_order_id", "amount"]].copy()
        out["work_package_id"] = inv["purchase_order_id"].map(package_of)
        return out

    def _actual_costs(self, df: pd.DataFrame, invoices: Records, purchase_orders: Records) -> np.ndarray:
        """Item actual_cost where present, else its linked paid invoices, else 0."""
        ac = df["actual_cost"]
        if invoices is None:
            return ac.fillna(0.0).to_numpy(dtype=float)

        paid = self._paid_invoices_by_package(invoices, purchase_orders)
        linked = paid.dropna(subset=["work_package_id"]).groupby("work_package_id")["amount"].sum()
        from_invoices = df["id"].map(linked).fillna(0.0)
        return ac.fillna(from_invoices).to_numpy(dtype=float)

    def _unlinked_paid_invoices(
        self, items: pd.DataFrame, invoices: Records, purchase_orders: Records
    ) -> float:
        """
        Paid invoices that reach no item in the collection, counted at project
        level. Only used when no item reports its own actual cost.
        """
        paid = self._paid_invoices_by_package(invoices, purchase_orders)
        unlinked = paid[~paid["work_package_id"].isin(set(items["id"].dropna()))]
        if not unlinked.empty:
            logger.debug("%d paid invoices not linked to a work item added to AC", len(unlinked))
        return float(unlinked["amount"].sum())


def compute_evm_metrics(
    work_items: Records,
    reporting_date,
    *,
    invoices: Records = None,
    purchase_orders: Records = None,
) -> EVMMetrics:
    """Convenience wrapper around EVMMetricsCalculator.calculate()."""
    return EVMMetricsCalculator(reporting_date).calculate(
        work_items, invoices=invoices, purchase_orders=purchase_orders
    )


def classify_work_items(work_items: Records, reporting_date) -> pd.DataFrame:
    """
    Schedule status per work item at the reporting date.

    completed   progress is 100
    delayed     not completed and the reporting date is past the end date
    in-progress progress above 0
    pending     everything else

    Items without an end date are never delayed.
    """
    rep = parse_date(reporting_date)
    if rep is None:
        raise ValueError(f"Invalid reporting_date: {reporting_date!r}")

    df = records_to_frame(work_items, WorkItem)
    out = df[["id", "project_id", "progress", "end_date"]].copy()
    status = np.select(
        [
            (df["progress"] >= 100).to_numpy(),
            (df["end_date"] < rep).to_numpy(),
            (df["progress"] > 0).to_numpy(),
        ],
        ["completed", "delayed", "in-progress"],
        default="pending",
    )
    out["status"] = pd.Series(status, index=df.index, dtype=object)
    return out
