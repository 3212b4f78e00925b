"""Tests for engine.cashflow and engine.spreading."""

import logging

import numpy as np
import pandas as pd
import pytest

from core.utils import month_windows
from engine.cashflow import (
    MONTH_COLUMNS,
    CashFlowConsolidator,
    project_cash_flow,
)
from engine.spreading import FullCostPerMonth, ProRatedByDays, get_spread


START = "2025-01-01"


@pytest.fixture
def consolidator():
    return CashFlowConsolidator(START, horizon_months=6)


@pytest.fixture
def projection(consolidator, projects, schedule, purchase_orders, advances, invoices):
    return consolidator.consolidate(projects, schedule, purchase_orders, advances, invoices)


def _column(proj, name):
    return list(proj.months[name])


# ---------------------------------------------------------------------------
# Consolidated view
# ---------------------------------------------------------------------------

class TestConsolidatedMonths:
    def test_shape_and_labels(self, projection):
        m = projection.months
        assert list(m.columns) == MONTH_COLUMNS
        assert list(m["month"]) == [1, 2, 3, 4, 5, 6]
        assert m["month_key"].iloc[0] == "2025-01"
        assert m["month_label"].iloc[1] == "February 2025"

    def test_planned_counts_full_cost_per_overlapped_month(self, projection):
        # B spans Feb..Apr and is counted in each of the three months
        assert _column(projection, "planned_expense") == [30000, 60000, 60000, 60000, 10000, 0]

    def test_committed_uses_approval_then_order_date(self, projection):
        # PO1 approved Jan 10; PO2 delivered, order date Feb 20; PO3 pending; PO4 undated
        assert _column(projection, "committed_expense") == [40000, 25000, 0, 0, 0, 0]

    def test_real_expense_counts_paid_advances_and_invoices(self, projection):
        # AD1 Jan 12, F1 (pagada) Jan 28, F2 Mar 5; AD2 and F3 are pending
        assert _column(projection, "real_expense") == [40000, 0, 20000, 0, 0, 0]

    def test_net_flow_and_cumulative(self, projection):
        assert _column(projection, "net_flow") == [-10000, 60000, 40000, 60000, 10000, 0]
        assert _column(projection, "cumulative_planned") == [30000, 90000, 150000, 210000, 220000, 220000]

    def test_totals_equal_column_sums(self, projection):
        for name, total in projection.totals.items():
            assert total == pytest.approx(projection.months[name].sum())
        assert projection.totals["planned_expense"] == 220000

    def test_metrics(self, projection):
        metrics = projection.metrics
        assert metrics["months"] == 6
        assert metrics["positive_months"] == 4
        assert metrics["negative_months"] == 1
        assert metrics["max_cumulative"] == 220000
        assert metrics["average_real_expense"] == pytest.approx(60000 / 6)

    def test_project_count(self, projection):
        assert projection.project_count == 2

    def test_to_records(self, projection):
        rows = projection.to_records()
        assert len(rows) == 6
        assert rows[0]["month_key"] == "2025-01"


class TestProjectSelection:
    def test_archived_project_excluded(self, consolidator, projects):
        tasks = {"P3": [{"id": "X", "cost": 999, "startDate": "2025-01-05", "endDate": "2025-01-06"}]}
        proj = consolidator.consolidate(projects, tasks)
        assert proj.totals["planned_expense"] == 0

    def test_no_active_projects(self, consolidator, schedule):
        proj = consolidator.consolidate([{"id": "P1", "status": "completed"}], schedule)
        assert proj.months.empty
        assert list(proj.months.columns) == MONTH_COLUMNS
        assert proj.project_count == 0
        assert proj.totals == {
            "planned_expense": 0.0,
            "committed_expense": 0.0,
            "real_expense": 0.0,
            "net_flow": 0.0,
        }
        assert proj.metrics["months"] == 0

    def test_grouped_and_flat_inputs_agree(self, consolidator, projects, schedule, purchase_orders):
        flat = consolidator.consolidate(projects, schedule, purchase_orders)
        grouped = consolidator.consolidate(projects, {"P1": schedule}, {"P1": purchase_orders})
        pd.testing.assert_frame_equal(flat.months, grouped.months)

    def test_flat_payments_take_project_from_order(self, consolidator, projects, purchase_orders):
        bare = [{"id": "F9", "purchaseOrderId": "PO1", "amount": 500,
                 "status": "paid", "paymentDate": "2025-02-03"}]
        proj = consolidator.consolidate(projects, None, purchase_orders, None, bare)
        assert _column(proj, "real_expense")[1] == 500


class TestCurveRules:
    def test_milestone_counted_in_start_month_only(self, consolidator):
        milestone = {"id": "M", "cost": 5000, "isMilestone": True,
                     "startDate": "2025-02-10", "endDate": "2025-04-10"}
        planned = consolidator.planned_curve([milestone])
        assert list(planned) == [0, 5000, 0, 0, 0, 0]

    def test_undated_tasks_logged_and_skipped(self, consolidator, caplog):
        with caplog.at_level(logging.WARNING):
            planned = consolidator.planned_curve([{"id": "u", "cost": 100}])
        assert planned.sum() == 0
        assert "without dates" in caplog.text

    def test_undated_committed_orders_logged(self, consolidator, purchase_orders, caplog):
        with caplog.at_level(logging.WARNING):
            consolidator.committed_curve(purchase_orders)
        assert "1 approved/delivered purchase orders" in caplog.text

    def test_payment_terms_shift_committed(self, purchase_orders):
        shifted = CashFlowConsolidator(START, 6, payment_offset_days=30)
        # PO1 Jan 10 -> Feb 9, PO2 Feb 20 -> Mar 22
        assert list(shifted.committed_curve(purchase_orders)) == [0, 40000, 25000, 0, 0, 0]

    def test_mid_month_start_includes_whole_first_month(self, advances):
        cf = CashFlowConsolidator("2025-01-20", 6)
        assert cf.real_curve(advances, None)[0] == 10000

    def test_prorated_spread(self, schedule):
        cf = CashFlowConsolidator(START, 6, spread="prorated")
        planned = cf.planned_curve(schedule)
        assert planned[0] == pytest.approx(30000)
        assert planned[1] == pytest.approx(60000 * 28 / 89)
        assert planned[2] == pytest.approx(60000 * 31 / 89)
        assert planned[3] == pytest.approx(60000 * 30 / 89)
        assert planned.sum() == pytest.approx(100000)


class TestConfiguration:
    @pytest.mark.parametrize("horizon", [6, 12, 18, 24])
    def test_supported_horizons(self, horizon):
        assert len(CashFlowConsolidator(START, horizon).windows) == horizon

    @pytest.mark.parametrize("horizon", [0, 7, 36])
    def test_unsupported_horizon(self, horizon):
        with pytest.raises(ValueError):
            CashFlowConsolidator(START, horizon)

    def test_invalid_start(self):
        with pytest.raises(ValueError):
            CashFlowConsolidator("next spring")

    def test_unknown_spread(self):
        with pytest.raises(ValueError):
            CashFlowConsolidator(START, spread="weekly")


# ---------------------------------------------------------------------------
# Single project view
# ---------------------------------------------------------------------------

class TestProjectCashFlow:
    def test_matches_consolidated_curves(self, projects, schedule, purchase_orders, advances, invoices):
        proj = project_cash_flow(
            projects[0], schedule, purchase_orders, advances, invoices,
            start_date=START, horizon_months=6,
        )
        assert _column(proj, "committed_expense") == [40000, 25000, 0, 0, 0, 0]
        assert _column(proj, "real_expense") == [40000, 0, 20000, 0, 0, 0]
        assert proj.project_count == 1

    def test_status_does_not_filter(self, projects, schedule):
        proj = project_cash_flow(projects[2], schedule, start_date=START, horizon_months=6)
        assert proj.totals["planned_expense"] == 220000

    def test_net60_terms(self, projects, purchase_orders):
        proj = project_cash_flow(
            projects[0], None, purchase_orders,
            start_date=START, horizon_months=6, payment_terms="net60",
        )
        # PO1 Jan 10 -> Mar 11, PO2 Feb 20 -> Apr 21
        assert _column(proj, "committed_expense") == [0, 0, 40000, 25000, 0, 0]

    def test_unknown_terms(self, projects):
        with pytest.raises(ValueError):
            project_cash_flow(projects[0], start_date=START, payment_terms="net45")

    def test_defaults_to_current_month(self, projects):
        proj = project_cash_flow(projects[0])
        assert proj.months["month_start"].iloc[0] == pd.Timestamp.today().normalize().replace(day=1)
        assert len(proj.months) == 12


# ---------------------------------------------------------------------------
# Spreading policies
# ---------------------------------------------------------------------------

class TestSpreads:
    @pytest.fixture
    def frame(self):
        return pd.DataFrame({
            "cost": [400.0, 100.0],
            "start_date": pd.to_datetime(["2025-01-30", None]),
            "end_date": pd.to_datetime(["2025-02-02", "2025-02-10"]),
            "is_milestone": [False, False],
        })

    def test_full_cost(self, frame):
        out = FullCostPerMonth().allocate(frame, month_windows(START, 3))
        np.testing.assert_allclose(out, [[400, 400, 0], [0, 0, 0]])

    def test_prorated_inclusive_days(self, frame):
        out = ProRatedByDays().allocate(frame, month_windows(START, 3))
        np.testing.assert_allclose(out, [[200, 200, 0], [0, 0, 0]])

    def test_lookup(self):
        assert get_spread("full").name == "full"
        assert get_spread("prorated").name == "prorated"
        with pytest.raises(ValueError):
            get_spread("linear")
