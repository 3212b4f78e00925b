"""Shared pytest fixtures for the forecast engine test suite.

Records are written the way the dashboard stores them: camelCase keys,
ISO date strings, occasionally Spanish status strings.
"""

import sys
from pathlib import Path

import pytest

# Ensure project root is on sys.path
BASE_DIR = Path(__file__).resolve().parent.parent
if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))


# ---------------------------------------------------------------------------
# Work items
# ---------------------------------------------------------------------------

@pytest.fixture
def half_done_task():
    """Single 31-day task, 50% progress; 15 days elapsed at 2025-01-16."""
    return {
        "id": "T1",
        "projectId": "P1",
        "cost": 100000,
        "progress": 50,
        "startDate": "2025-01-01",
        "endDate": "2025-02-01",
        "isMilestone": False,
    }


@pytest.fixture
def schedule():
    """Three tasks: finished, in flight, not started (reporting 2025-03-15)."""
    return [
        {"id": "A", "projectId": "P1", "cost": 30000, "progress": 100,
         "startDate": "2025-01-01", "endDate": "2025-01-31"},
        {"id": "B", "projectId": "P1", "cost": 60000, "progress": 40,
         "startDate": "2025-02-01", "endDate": "2025-04-30"},
        {"id": "C", "projectId": "P1", "cost": 10000, "progress": 0,
         "startDate": "2025-05-01", "endDate": "2025-05-31"},
    ]


# ---------------------------------------------------------------------------
# Risks
# ---------------------------------------------------------------------------

@pytest.fixture
def high_risk():
    return {
        "id": "R1",
        "projectId": "P1",
        "name": "Supplier insolvency",
        "status": "active",
        "priority": "high",
        "probability": 0.5,
        "impact": 0.8,
        "costImpact": 200000,
        "category": "financial",
        "phase": "execution",
    }


@pytest.fixture
def mixed_register(high_risk):
    return [
        high_risk,
        {"id": "R2", "projectId": "P1", "status": "active", "priority": "medium",
         "probability": 0.3, "impact": 0.5, "costImpact": 50000, "category": "technical"},
        {"id": "R3", "projectId": "P1", "status": "mitigated", "priority": "high",
         "probability": 0.9, "impact": 0.9, "costImpact": 500000, "category": "schedule",
         "actualOccurred": True},
        {"id": "R4", "projectId": "P1", "status": "closed", "priority": "low",
         "probability": 0.1, "impact": 0.1, "costImpact": 1000},
    ]


# ---------------------------------------------------------------------------
# Financial records
# ---------------------------------------------------------------------------

@pytest.fixture
def purchase_orders():
    return [
        {"id": "PO1", "projectId": "P1", "number": "OC-001", "status": "approved",
         "totalAmount": 40000, "approvalDate": "2025-01-10", "workPackageId": "A"},
        {"id": "PO2", "projectId": "P1", "number": "OC-002", "status": "delivered",
         "totalAmount": 25000, "date": "2025-02-20", "workPackageId": "B"},
        {"id": "PO3", "projectId": "P1", "number": "OC-003", "status": "pending",
         "totalAmount": 99999, "approvalDate": "2025-01-15"},
        {"id": "PO4", "projectId": "P1", "number": "OC-004", "status": "approved",
         "totalAmount": 7000},
    ]


@pytest.fixture
def advances():
    return [
        {"id": "AD1", "purchaseOrderId": "PO1", "projectId": "P1", "amount": 10000,
         "status": "paid", "paymentDate": "2025-01-12"},
        {"id": "AD2", "purchaseOrderId": "PO2", "projectId": "P1", "amount": 5000,
         "status": "pending", "paymentDate": "2025-02-25"},
    ]


@pytest.fixture
def invoices():
    return [
        {"id": "F1", "purchaseOrderId": "PO1", "projectId": "P1", "amount": 30000,
         "status": "pagada", "paymentDate": "2025-01-28"},
        {"id": "F2", "purchaseOrderId": "PO2", "projectId": "P1", "amount": 20000,
         "status": "Paid", "paymentDate": "2025-03-05"},
        {"id": "F3", "purchaseOrderId": "PO2", "projectId": "P1", "amount": 4000,
         "status": "pending", "dueDate": "2025-04-01"},
    ]


@pytest.fixture
def projects():
    return [
        {"id": "P1", "name": "Plant retrofit", "status": "active", "budget": 1000000},
        {"id": "P2", "name": "Warehouse", "status": "active", "budget": 250000},
        {"id": "P3", "name": "Old site", "status": "archived", "budget": 900000},
    ]
