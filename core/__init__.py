"""
Core package: record schema, configuration and shared utilities.
No business logic lives here.
"""

from .schema import (
    Advance,
    Invoice,
    PaymentStatus,
    Project,
    ProjectStatus,
    PurchaseOrder,
    PurchaseOrderStatus,
    Risk,
    RiskPriority,
    RiskStatus,
    WorkItem,
)
from .config import ForecastConfig, ReservePolicy, SUPPORTED_HORIZONS, PAYMENT_TERMS
from .utils import excel_round, month_windows, parse_date

__all__ = [
    "Advance",
    "Invoice",
    "PaymentStatus",
    "Project",
    "ProjectStatus",
    "PurchaseOrder",
    "PurchaseOrderStatus",
    "Risk",
    "RiskPriority",
    "RiskStatus",
    "WorkItem",
    "ForecastConfig",
    "ReservePolicy",
    "SUPPORTED_HORIZONS",
    "PAYMENT_TERMS",
    "excel_round",
    "month_windows",
    "parse_date",
]
