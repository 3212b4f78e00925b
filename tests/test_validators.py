"""Tests for data_prep.validators."""

from data_prep.validators import (
    ValidationResult,
    validate_financials,
    validate_risks,
    validate_work_items,
)


class TestValidationResult:
    def test_empty_is_valid(self):
        result = ValidationResult()
        assert result.is_valid
        assert "All checks passed" in result.summary()

    def test_merge_keeps_both(self):
        merged = ValidationResult(errors=["a"]).merge(ValidationResult(warnings=["b"]))
        assert merged.errors == ["a"]
        assert merged.warnings == ["b"]
        assert not merged.is_valid


class TestWorkItemChecks:
    def test_clean_schedule(self, schedule):
        result = validate_work_items(schedule)
        assert result.is_valid
        assert result.warnings == []

    def test_no_items_warns(self):
        assert validate_work_items([]).warnings == ["No work items supplied."]

    def test_inverted_dates_are_errors(self):
        result = validate_work_items([
            {"id": "x", "startDate": "2025-03-01", "endDate": "2025-02-01"},
        ])
        assert not result.is_valid
        assert "end before they start" in result.errors[0]

    def test_duplicate_ids(self):
        result = validate_work_items([
            {"id": "x", "startDate": "2025-01-01", "endDate": "2025-01-02"},
            {"id": "x", "startDate": "2025-01-01", "endDate": "2025-01-02"},
        ])
        assert any("duplicate" in e for e in result.errors)

    def test_undated_items_warn(self):
        result = validate_work_items([{"id": "x", "cost": 10}])
        assert result.is_valid
        assert any("lack a start or end date" in w for w in result.warnings)


class TestRiskChecks:
    def test_active_without_cost_impact(self):
        result = validate_risks([{"id": "r", "status": "active", "probability": 0.5}])
        assert any("no cost impact" in w for w in result.warnings)

    def test_unknown_priority(self):
        result = validate_risks([{"id": "r", "priority": "urgent", "costImpact": 1}])
        assert any("Risk priority" in w for w in result.warnings)

    def test_register_fixture_clean(self, mixed_register):
        assert validate_risks(mixed_register).warnings == []


class TestFinancialChecks:
    def test_undated_committed_order(self, purchase_orders):
        result = validate_financials(purchase_orders=purchase_orders)
        # PO4 is approved with neither approval date nor date
        assert any("1 approved/delivered purchase orders have no date" in w for w in result.warnings)
        assert any("1 approved purchase orders have no approval date" in w for w in result.warnings)

    def test_paid_invoice_without_date(self):
        result = validate_financials(invoices=[{"id": "f", "status": "paid", "amount": 5}])
        assert any("paid invoices have no payment date" in w for w in result.warnings)

    def test_nothing_supplied(self):
        assert validate_financials().is_valid
