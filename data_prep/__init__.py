"""
Data preparation: record normalization with key-based joins, and input validation.
"""

from .records import (
    attach_project_ids,
    ensure_grouped,
    ensure_grouped_payments,
    group_by_project,
    index_by,
    normalize_records,
    records_to_frame,
)
from .validators import (
    ValidationResult,
    validate_financials,
    validate_risks,
    validate_work_items,
)

__all__ = [
    "attach_project_ids",
    "ensure_grouped",
    "ensure_grouped_payments",
    "group_by_project",
    "index_by",
    "normalize_records",
    "records_to_frame",
    "ValidationResult",
    "validate_financials",
    "validate_risks",
    "validate_work_items",
]
