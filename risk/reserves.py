"""
Contingency and management reserve sizing.

Contingency covers known risks:
    floor_rate * budget + Σ probability × cost_impact × priority_factor

Management reserve covers unknown risks, scaled by how busy the register is:
    base_rate * budget
      × count tier      (first tier whose threshold the active count exceeds)
      × high-priority   (when more than N active high-priority risks)

The two multipliers are applied in that order.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List

from core.config import ReservePolicy
from core.schema import Risk, RiskPriority, RiskStatus
from data_prep.records import Records, normalize_records

logger = logging.getLogger(__name__)


def active_risks(risks: Records) -> List[Risk]:
    return [r for r in normalize_records(risks, Risk) if r.status == RiskStatus.ACTIVE.value]


@dataclass(frozen=True)
class ReserveEstimate:
    budget: float
    contingency_reserve: float
    management_reserve: float
    active_risk_count: int = 0
    high_priority_count: int = 0
    risk_exposure: float = 0.0  # weighted term of the contingency, without the floor

    @property
    def total_reserves(self) -> float:
        return self.contingency_reserve + self.management_reserve

    @property
    def total_budget(self) -> float:
        return self.budget + self.total_reserves

    def available_budget(self, committed: float) -> float:
        return self.budget - committed

    def available_with_reserves(self, committed: float) -> float:
        return self.total_budget - committed

    def to_dict(self) -> Dict[str, float]:
        out = asdict(self)
        out["total_reserves"] = self.total_reserves
        out["total_budget"] = self.total_budget
        return out


@dataclass
class ReserveSizer:
    """
    Usage:
        sizer = ReserveSizer()
        est = sizer.size(1_000_000, risks)
        est.contingency_reserve, est.management_reserve, est.total_budget
    """
    policy: ReservePolicy = field(default_factory=ReservePolicy)

    def contingency(self, budget: float, risks: List[Risk]) -> float:
        return self.policy.contingency_floor_rate * budget + self.weighted_exposure(risks)

    def weighted_exposure(self, risks: List[Risk]) -> float:
        return float(sum(
            r.probability * r.cost_impact * self.policy.priority_factor(r.priority)
            for r in risks
        ))

    def management(self, budget: float, risks: List[Risk]) -> float:
        p = self.policy
        reserve = p.management_base_rate * budget

        n_active = len(risks)
        for threshold, multiplier in p.count_tiers:
            if n_active > threshold:
                reserve *= multiplier
                break

        n_high = sum(1 for r in risks if r.priority == RiskPriority.HIGH.value)
        if n_high > p.high_priority_threshold:
            reserve *= p.high_priority_multiplier
        return float(reserve)

    def size(self, budget: float, risks: Records) -> ReserveEstimate:
        """
        Size both reserves for one project.

        Parameters
        ----------
        budget : float
            Project base budget (negative values are treated as 0)
        risks : sequence of Risk or mappings
            The project's risk register; only active risks count
        """
        budget = max(float(budget or 0.0), 0.0)
        active = active_risks(risks)
        n_high = sum(1 for r in active if r.priority == RiskPriority.HIGH.value)

        estimate = ReserveEstimate(
            budget=budget,
            contingency_reserve=self.contingency(budget, active),
            management_reserve=self.management(budget, active),
            active_risk_count=len(active),
            high_priority_count=n_high,
            risk_exposure=self.weighted_exposure(active),
        )
        logger.debug(
            "Reserves for budget %.2f: contingency %.2f, management %.2f (%d active risks)",
            budget, estimate.contingency_reserve, estimate.management_reserve, len(active),
        )
        return estimate
