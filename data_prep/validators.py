"""
Data quality checks for engine inputs.

The calculators never fail on bad records; they skip or default them. These
checks let the caller show *why* a number looks off:
- missing or duplicate ids
- missing / inverted schedule dates
- approved orders with no approval date (they never reach the cash flow)
- paid advances/invoices with no payment date
- statuses outside the known domain
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List

import pandas as pd

from core.schema import (
    Advance,
    Invoice,
    PaymentStatus,
    PurchaseOrder,
    PurchaseOrderStatus,
    Risk,
    RiskPriority,
    RiskStatus,
    WorkItem,
    COMMITTED_PO_STATUSES,
)

from .records import Records, records_to_frame


@dataclass
class ValidationResult:
    """Collects validation warnings/errors for one or more record collections."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return len(self.errors) == 0

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
        )

    def summary(self) -> str:
        lines = []
        if self.errors:
            lines.append(f"ERRORS ({len(self.errors)}):")
            for e in self.errors:
                lines.append(f"  ✗ {e}")
        if self.warnings:
            lines.append(f"WARNINGS ({len(self.warnings)}):")
            for w in self.warnings:
                lines.append(f"  ⚠ {w}")
        if not lines:
            lines.append("✓ All checks passed.")
        return "\n".join(lines)


def _check_ids(df: pd.DataFrame, label: str, result: ValidationResult) -> None:
    n_missing = int(df["id"].isna().sum())
    if n_missing > 0:
        result.warnings.append(f"{n_missing} {label} have no id.")
    n_dup = int(df["id"].dropna().duplicated().sum())
    if n_dup > 0:
        result.errors.append(f"{n_dup} duplicate {label} ids found.")


def _check_domain(series: pd.Series, allowed, label: str, result: ValidationResult) -> None:
    unknown = sorted(set(series.dropna()) - {a.value for a in allowed})
    if unknown:
        result.warnings.append(f"{label} has unknown values: {unknown}")


def validate_work_items(records: Records) -> ValidationResult:
    result = ValidationResult()
    df = records_to_frame(records, WorkItem)
    if df.empty:
        result.warnings.append("No work items supplied.")
        return result

    _check_ids(df, "work items", result)

    n_undated = int((df["start_date"].isna() | df["end_date"].isna()).sum())
    if n_undated > 0:
        result.warnings.append(
            f"{n_undated} work items lack a start or end date (excluded from PV and cash flow)."
        )

    n_inverted = int((df["end_date"] < df["start_date"]).sum())
    if n_inverted > 0:
        result.errors.append(f"{n_inverted} work items end before they start.")

    n_negative = int((df["cost"] < 0).sum())
    if n_negative > 0:
        result.warnings.append(f"{n_negative} work items have a negative cost.")

    return result


def validate_risks(records: Records) -> ValidationResult:
    result = ValidationResult()
    df = records_to_frame(records, Risk)
    if df.empty:
        return result

    _check_ids(df, "risks", result)
    _check_domain(df["status"], RiskStatus, "Risk status", result)
    _check_domain(df["priority"], RiskPriority, "Risk priority", result)

    active = df[df["status"] == RiskStatus.ACTIVE.value]
    n_no_cost = int((active["cost_impact"] <= 0).sum())
    if n_no_cost > 0:
        result.warnings.append(
            f"{n_no_cost} active risks have no cost impact (they add nothing to reserves or simulation)."
        )
    return result


def validate_financials(
    purchase_orders: Records = None,
    advances: Records = None,
    invoices: Records = None,
) -> ValidationResult:
    result = ValidationResult()

    po = records_to_frame(purchase_orders, PurchaseOrder)
    if not po.empty:
        _check_ids(po, "purchase orders", result)
        _check_domain(po["status"], PurchaseOrderStatus, "Purchase order status", result)
        committed = po[po["status"].isin(COMMITTED_PO_STATUSES)]
        n_undated = int((committed["approval_date"].isna() & committed["date"].isna()).sum())
        if n_undated > 0:
            result.warnings.append(
                f"{n_undated} approved/delivered purchase orders have no date (excluded from committed cash flow)."
            )
        n_no_approval = int(
            ((po["status"] == PurchaseOrderStatus.APPROVED.value) & po["approval_date"].isna()).sum()
        )
        if n_no_approval > 0:
            result.warnings.append(f"{n_no_approval} approved purchase orders have no approval date.")

    for label, recs, model in (("Advance", advances, Advance), ("Invoice", invoices, Invoice)):
        df = records_to_frame(recs, model)
        if df.empty:
            continue
        _check_domain(df["status"], PaymentStatus, f"{label} status", result)
        paid = df["status"] == PaymentStatus.PAID.value
        n_undated = int((paid & df["payment_date"].isna()).sum())
        if n_undated > 0:
            result.warnings.append(
                f"{n_undated} paid {label.lower()}s have no payment date (excluded from real cash flow)."
            )
        n_negative = int((df["amount"] < 0).sum())
        if n_negative > 0:
            result.warnings.append(f"{n_negative} {label.lower()}s have a negative amount.")

    return result
