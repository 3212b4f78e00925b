"""
Record schema for the forecasting engine.

The dashboard hands us plain mappings (camelCase keys, occasionally Spanish
status strings, dates as ISO strings). These models normalize one record at
a time so the calculators only ever see:

  - floats for every amount (absent -> 0.0)
  - datetime.date or None for every date (unparseable -> None, logged)
  - one enumerated status domain per record type

Records reference each other only by key (project_id, purchase_order_id,
work_package_id). Joins happen in data_prep.records over flat collections.
"""

from __future__ import annotations

import logging
import datetime as dt
from collections.abc import Mapping
from enum import Enum
from typing import ClassVar, Dict, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .utils import parse_date, to_amount

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Status domains
# ---------------------------------------------------------------------------

class ProjectStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"
    ON_HOLD = "on-hold"
    CANCELLED = "cancelled"


class RiskStatus(str, Enum):
    ACTIVE = "active"
    MITIGATED = "mitigated"
    CLOSED = "closed"


class RiskPriority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class PurchaseOrderStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    DELIVERED = "delivered"


class PaymentStatus(str, Enum):
    """Shared by advances and invoices."""
    PENDING = "pending"
    PAID = "paid"


# Purchase orders that count as committed spend.
COMMITTED_PO_STATUSES: Tuple[str, ...] = (
    PurchaseOrderStatus.APPROVED.value,
    PurchaseOrderStatus.DELIVERED.value,
)

# Lower-cased aliases seen in stored data. Anything not listed is kept as-is
# (lower-cased), so an unknown status never matches a known one.
_STATUS_ALIASES: Dict[str, str] = {
    # payments
    "pagada": "paid",
    "pagado": "paid",
    "pagadas": "paid",
    "pendiente": "pending",
    "pendientes": "pending",
    # purchase orders
    "aprobada": "approved",
    "aprobado": "approved",
    "rechazada": "rejected",
    "rechazado": "rejected",
    "entregada": "delivered",
    "entregado": "delivered",
    # projects / risks
    "activo": "active",
    "activa": "active",
    "completado": "completed",
    "completada": "completed",
    "archivado": "archived",
    "archivada": "archived",
    "en pausa": "on-hold",
    "on_hold": "on-hold",
    "paused": "on-hold",
    "cancelado": "cancelled",
    "cancelada": "cancelled",
    "canceled": "cancelled",
    "mitigado": "mitigated",
    "mitigada": "mitigated",
    "cerrado": "closed",
    "cerrada": "closed",
    # priorities
    "alta": "high",
    "alto": "high",
    "media": "medium",
    "medio": "medium",
    "baja": "low",
    "bajo": "low",
}


def normalize_status(value, default: str) -> str:
    if value is None:
        return default
    if isinstance(value, Enum):
        value = value.value
    text = str(value).strip().lower()
    if not text:
        return default
    return _STATUS_ALIASES.get(text, text)


def _clamp(value: float, low: float, high: float) -> float:
    return min(max(value, low), high)


# ---------------------------------------------------------------------------
# Base record
# ---------------------------------------------------------------------------

class EngineRecord(BaseModel):
    """
    Common normalization for all input records.

    Subclasses list their date and amount fields in DATE_FIELDS /
    AMOUNT_FIELDS; data_prep.records uses these to type DataFrame columns.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ()
    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ()

    id: Optional[str] = None

    @field_validator("id", "project_id", "purchase_order_id", "work_package_id",
                     mode="before", check_fields=False)
    @classmethod
    def coerce_key(cls, v):
        if v is None:
            return None
        text = str(v).strip()
        return text or None

    @classmethod
    def _parse_record_date(cls, v, field_name: str, record_id) -> Optional[dt.date]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        ts = parse_date(v)
        if ts is None:
            logger.warning(
                "%s %s: unparseable %s %r, treated as missing",
                cls.__name__, record_id, field_name, v,
            )
            return None
        return ts.date()


def _date_validator(*fields: str):
    """Build a before-validator that parses the given date fields leniently."""

    @field_validator(*fields, mode="before")
    @classmethod
    def _parse(cls, v, info):
        return cls._parse_record_date(v, info.field_name, info.data.get("id"))

    return _parse


_PAYMENT_DATE_KEYS = ("paymentDate", "payment_date")


def _blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _payment_date_fallback():
    """Build a before-validator that uses `date` when the payment date is absent or blank."""

    @model_validator(mode="before")
    @classmethod
    def _fallback(cls, data):
        if not isinstance(data, Mapping):
            return data
        if all(_blank(data.get(k)) for k in _PAYMENT_DATE_KEYS) and not _blank(data.get("date")):
            data = {k: v for k, v in data.items() if k not in _PAYMENT_DATE_KEYS}
            data["paymentDate"] = data["date"]
        return data

    return _fallback


def _flag(v) -> bool:
    if isinstance(v, str):
        return v.strip().lower() in ("true", "1", "yes", "y", "si", "sí")
    return bool(v)


def _amount_validator(*fields: str):
    @field_validator(*fields, mode="before")
    @classmethod
    def _parse(cls, v):
        return to_amount(v)

    return _parse


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------

class WorkItem(EngineRecord):
    """A schedule task or work package. `cost` is its planned value."""

    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("start_date", "end_date")
    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ("cost", "progress", "actual_cost")

    project_id: Optional[str] = None
    cost: float = Field(0.0, validation_alias=AliasChoices("cost", "plannedValue", "planned_value"))
    progress: float = Field(
        0.0, validation_alias=AliasChoices("progress", "percentComplete", "percent_complete")
    )
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    is_milestone: bool = False
    actual_cost: Optional[float] = Field(
        None, validation_alias=AliasChoices("actualCost", "actual_cost")
    )

    parse_dates = _date_validator("start_date", "end_date")
    parse_cost = _amount_validator("cost")

    @field_validator("progress", mode="before")
    @classmethod
    def clamp_progress(cls, v):
        return _clamp(to_amount(v), 0.0, 100.0)

    @field_validator("actual_cost", mode="before")
    @classmethod
    def optional_actual_cost(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return to_amount(v)

    @field_validator("is_milestone", mode="before")
    @classmethod
    def coerce_flag(cls, v):
        return _flag(v)


class Risk(EngineRecord):
    """Risk register entry. `impact` is qualitative; `cost_impact` is money."""

    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ("probability", "impact", "cost_impact", "risk_score")

    project_id: Optional[str] = None
    name: Optional[str] = None
    status: str = RiskStatus.ACTIVE.value
    priority: str = RiskPriority.MEDIUM.value
    probability: float = 0.0
    impact: float = 0.0
    cost_impact: float = 0.0
    risk_score: Optional[float] = None
    category: Optional[str] = None
    phase: Optional[str] = None
    actual_occurred: bool = False

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status_field(cls, v):
        return normalize_status(v, RiskStatus.ACTIVE.value)

    @field_validator("priority", mode="before")
    @classmethod
    def normalize_priority(cls, v):
        return normalize_status(v, RiskPriority.MEDIUM.value)

    @field_validator("probability", "impact", mode="before")
    @classmethod
    def unit_interval(cls, v):
        return _clamp(to_amount(v), 0.0, 1.0)

    @field_validator("cost_impact", mode="before")
    @classmethod
    def non_negative_cost(cls, v):
        amount = to_amount(v)
        if amount < 0:
            logger.warning("Risk cost impact %r is negative, clamped to 0", v)
            return 0.0
        return amount

    @field_validator("risk_score", mode="before")
    @classmethod
    def optional_score(cls, v):
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        return to_amount(v)

    @field_validator("actual_occurred", mode="before")
    @classmethod
    def coerce_occurred(cls, v):
        return _flag(v)

    @model_validator(mode="after")
    def derive_score(self):
        if self.risk_score is None:
            self.risk_score = self.probability * self.impact
        return self


class Project(EngineRecord):
    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ("budget",)

    name: Optional[str] = None
    status: str = ProjectStatus.ACTIVE.value
    budget: float = 0.0

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status_field(cls, v):
        return normalize_status(v, ProjectStatus.ACTIVE.value)

    @field_validator("budget", mode="before")
    @classmethod
    def non_negative_budget(cls, v):
        amount = to_amount(v)
        if amount < 0:
            logger.warning("Project budget %r is negative, clamped to 0", v)
            return 0.0
        return amount


class PurchaseOrder(EngineRecord):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("approval_date", "date")
    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ("total_amount",)

    project_id: Optional[str] = None
    number: Optional[str] = None
    status: str = PurchaseOrderStatus.PENDING.value
    total_amount: float = 0.0
    approval_date: Optional[dt.date] = None
    date: Optional[dt.date] = None
    work_package_id: Optional[str] = None

    parse_dates = _date_validator("approval_date", "date")
    parse_amount = _amount_validator("total_amount")

    @field_validator("number", mode="before")
    @classmethod
    def coerce_number(cls, v):
        return None if v is None else str(v)

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status_field(cls, v):
        return normalize_status(v, PurchaseOrderStatus.PENDING.value)

    @property
    def effective_date(self) -> Optional[dt.date]:
        """Approval date, falling back to the order date."""
        return self.approval_date or self.date


class Advance(EngineRecord):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("payment_date",)
    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ("amount",)

    project_id: Optional[str] = None
    purchase_order_id: Optional[str] = None
    amount: float = 0.0
    status: str = PaymentStatus.PENDING.value
    payment_date: Optional[dt.date] = Field(
        None, validation_alias=AliasChoices("paymentDate", "payment_date", "date")
    )

    parse_dates = _date_validator("payment_date")
    payment_date_fallback = _payment_date_fallback()
    parse_amount = _amount_validator("amount")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status_field(cls, v):
        return normalize_status(v, PaymentStatus.PENDING.value)


class Invoice(EngineRecord):
    DATE_FIELDS: ClassVar[Tuple[str, ...]] = ("payment_date", "due_date")
    AMOUNT_FIELDS: ClassVar[Tuple[str, ...]] = ("amount",)

    project_id: Optional[str] = None
    purchase_order_id: Optional[str] = None
    amount: float = 0.0
    status: str = PaymentStatus.PENDING.value
    payment_date: Optional[dt.date] = Field(
        None, validation_alias=AliasChoices("paymentDate", "payment_date", "date")
    )
    due_date: Optional[dt.date] = None

    parse_dates = _date_validator("payment_date", "due_date")
    payment_date_fallback = _payment_date_fallback()
    parse_amount = _amount_validator("amount")

    @field_validator("status", mode="before")
    @classmethod
    def normalize_status_field(cls, v):
        return normalize_status(v, PaymentStatus.PENDING.value)
