"""
Budget position of one project: what has been ordered, advanced and invoiced
against its budget, and how much is left with and without reserves.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Dict, Optional

from core.config import ReservePolicy
from core.schema import Advance, Invoice, PaymentStatus, PurchaseOrder
from data_prep.records import Records, normalize_records
from risk.reserves import ReserveEstimate, ReserveSizer


@dataclass(frozen=True)
class FinancialSummary:
    budget: float
    total_purchase_orders: float
    total_advances: float
    total_invoices: float
    paid_invoices: float
    pending_invoices: float
    committed_budget: float
    available_budget: float
    reserves: ReserveEstimate

    @property
    def total_project_budget(self) -> float:
        return self.reserves.total_budget

    @property
    def available_with_reserves(self) -> float:
        # reserves are measured against ordered amounts only
        return self.reserves.available_with_reserves(self.total_purchase_orders)

    def to_dict(self) -> Dict[str, float]:
        out = asdict(self)
        out["reserves"] = self.reserves.to_dict()
        out["total_project_budget"] = self.total_project_budget
        out["available_with_reserves"] = self.available_with_reserves
        return out


def summarize_financials(
    budget: float,
    purchase_orders: Records = None,
    advances: Records = None,
    invoices: Records = None,
    risks: Records = None,
    *,
    policy: Optional[ReservePolicy] = None,
) -> FinancialSummary:
    """
    Parameters
    ----------
    budget : float
        Project base budget
    purchase_orders, advances, invoices : sequences of records
        The project's financial records, any status
    risks : sequence of records
        The project's risk register (active risks size the reserves)

    committed_budget = purchase orders + advances
    available_budget = budget - committed_budget
    """
    budget = float(budget or 0.0)
    orders = normalize_records(purchase_orders, PurchaseOrder)
    advs = normalize_records(advances, Advance)
    invs = normalize_records(invoices, Invoice)

    total_po = sum(po.total_amount for po in orders)
    total_adv = sum(a.amount for a in advs)
    total_inv = sum(i.amount for i in invs)
    paid_inv = sum(i.amount for i in invs if i.status == PaymentStatus.PAID.value)
    committed = total_po + total_adv

    sizer = ReserveSizer(policy) if policy is not None else ReserveSizer()
    return FinancialSummary(
        budget=budget,
        total_purchase_orders=float(total_po),
        total_advances=float(total_adv),
        total_invoices=float(total_inv),
        paid_invoices=float(paid_inv),
        pending_invoices=float(total_inv - paid_inv),
        committed_budget=float(committed),
        available_budget=float(budget - committed),
        reserves=sizer.size(budget, risks),
    )
