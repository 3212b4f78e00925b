"""
Turn raw dashboard records into typed DataFrames and flat key indexes.

Input collections arrive either as flat sequences (each record carrying a
projectId) or already keyed by project id, the way the dashboard stores
them. Both shapes are accepted; nothing here builds object graphs, every
join is a dictionary lookup by key.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Dict, Iterable, List, Optional, Sequence, Type, TypeVar, Union

import pandas as pd
from pydantic import BaseModel, ValidationError

from core.schema import EngineRecord, PurchaseOrder

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=EngineRecord)

Records = Optional[Iterable[object]]
Collection = Union[None, Mapping, Sequence]


def normalize_records(records: Records, model: Type[R]) -> List[R]:
    """
    Validate each record into `model`, skipping (and logging) anything that
    cannot be read as a record at all. Field-level problems never drop a
    record; the model coerces them.
    """
    if records is None:
        return []

    out: List[R] = []
    for i, rec in enumerate(records):
        if isinstance(rec, model):
            out.append(rec)
            continue
        if isinstance(rec, BaseModel):
            rec = rec.model_dump()
        if not isinstance(rec, Mapping):
            logger.warning("Skipping %s record #%d: expected a mapping, got %s",
                           model.__name__, i, type(rec).__name__)
            continue
        try:
            out.append(model.model_validate(dict(rec)))
        except ValidationError as exc:
            logger.warning("Skipping %s record #%d (%s): %s",
                           model.__name__, i, rec.get("id"), exc.errors()[0].get("msg"))
    return out


def records_to_frame(records: Records, model: Type[R]) -> pd.DataFrame:
    """
    One row per valid record, one column per model field.

    Date fields become datetime64 (missing -> NaT) and amount fields become
    float (missing optional amounts -> NaN), so calculators can work on
    whole columns.
    """
    models = normalize_records(records, model)
    columns = list(model.model_fields)
    if models:
        df = pd.DataFrame([m.model_dump() for m in models], columns=columns)
    else:
        df = pd.DataFrame(columns=columns)

    for dcol in model.DATE_FIELDS:
        df[dcol] = pd.to_datetime(df[dcol], errors="coerce")
    for ncol in model.AMOUNT_FIELDS:
        df[ncol] = pd.to_numeric(df[ncol], errors="coerce").astype(float)
    return df


def index_by(records: Iterable[EngineRecord], key: str = "id") -> Dict[str, EngineRecord]:
    """Map key -> record. Later duplicates win; records without the key are skipped."""
    out: Dict[str, EngineRecord] = {}
    for rec in records:
        value = getattr(rec, key, None)
        if value is not None:
            out[value] = rec
    return out


def group_by_project(records: Iterable[EngineRecord], *, key: str = "project_id") -> Dict[str, List]:
    grouped: Dict[str, List] = {}
    unassigned = 0
    for rec in records:
        value = getattr(rec, key, None)
        if value is None:
            unassigned += 1
            continue
        grouped.setdefault(value, []).append(rec)
    if unassigned:
        logger.warning("%d records have no %s and were left out of per-project grouping",
                       unassigned, key)
    return grouped


def ensure_grouped(collection: Collection, model: Type[R]) -> Dict[str, List[R]]:
    """
    Accept either {project_id: [records]} or a flat sequence of records with
    project ids, and return {project_id: [normalized records]}.
    """
    if collection is None:
        return {}
    if isinstance(collection, Mapping):
        return {str(pid): normalize_records(recs, model) for pid, recs in collection.items()}
    return group_by_project(normalize_records(collection, model))


def attach_project_ids(payments: Sequence[R], purchase_orders: Iterable[PurchaseOrder]) -> List[R]:
    """
    Fill project_id on advances/invoices that only carry purchase_order_id,
    by looking the order up. Returns new records; inputs are not modified.
    """
    orders = index_by(purchase_orders)
    out: List[R] = []
    for rec in payments:
        if rec.project_id is None and rec.purchase_order_id in orders:
            rec = rec.model_copy(update={"project_id": orders[rec.purchase_order_id].project_id})
        out.append(rec)
    return out


def ensure_grouped_payments(
    collection: Collection, model: Type[R], purchase_orders: Iterable[PurchaseOrder]
) -> Dict[str, List[R]]:
    """
    ensure_grouped() for advances/invoices: flat records missing a project id
    take it from their purchase order before grouping.
    """
    if collection is None or isinstance(collection, Mapping):
        return ensure_grouped(collection, model)
    flat = attach_project_ids(normalize_records(collection, model), purchase_orders)
    return group_by_project(flat)
