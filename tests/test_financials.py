"""Tests for pm.financials: budget position against orders, advances and invoices."""

import pytest

from core.config import ReservePolicy
from pm.financials import summarize_financials


@pytest.fixture
def summary(purchase_orders, advances, invoices, high_risk):
    return summarize_financials(1_000_000, purchase_orders, advances, invoices, [high_risk])


class TestTotals:
    def test_purchase_orders_all_statuses(self, summary):
        assert summary.total_purchase_orders == 40000 + 25000 + 99999 + 7000

    def test_advances_and_invoices(self, summary):
        assert summary.total_advances == 15000
        assert summary.total_invoices == 54000
        assert summary.paid_invoices == 50000
        assert summary.pending_invoices == 4000

    def test_committed_and_available(self, summary):
        assert summary.committed_budget == 171999 + 15000
        assert summary.available_budget == 1_000_000 - 186999


class TestWithReserves:
    def test_total_project_budget(self, summary):
        # contingency 50000 + 100000 weighted, management 100000
        assert summary.total_project_budget == pytest.approx(1_300_000)

    def test_available_with_reserves_uses_orders_only(self, summary):
        assert summary.available_with_reserves == pytest.approx(1_300_000 - 171999)

    def test_custom_policy(self, purchase_orders):
        policy = ReservePolicy(contingency_floor_rate=0.0, management_base_rate=0.0)
        s = summarize_financials(500, purchase_orders[:1], policy=policy)
        assert s.total_project_budget == 500
        assert s.available_with_reserves == 500 - 40000

    def test_to_dict(self, summary):
        d = summary.to_dict()
        assert d["reserves"]["contingency_reserve"] == pytest.approx(200000)
        assert d["available_with_reserves"] == pytest.approx(summary.available_with_reserves)


def test_empty_project():
    s = summarize_financials(0)
    assert s.committed_budget == 0
    assert s.available_budget == 0
    assert s.total_project_budget == 0
