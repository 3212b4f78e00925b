"""
Risk register analytics: scores, priorities, expected monetary value and the
probability/impact matrix. Qualitative views only; money-at-risk sizing
lives in risk.reserves and risk.sampler.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Dict, List

import pandas as pd

from core.schema import Risk, RiskPriority, RiskStatus
from core.utils import round_half_up
from data_prep.records import Records, normalize_records, records_to_frame

logger = logging.getLogger(__name__)

# (lower bound, priority) checked top-down
PRIORITY_BANDS = ((0.7, RiskPriority.HIGH.value), (0.4, RiskPriority.MEDIUM.value))

# (share of budget in %, level) checked top-down, strict
EXPOSURE_LEVELS = ((20.0, "critical"), (10.0, "high"), (5.0, "medium"))

MITIGATION_STRATEGIES: Dict[str, str] = {
    "technical": "Add testing and design reviews",
    "financial": "Hold a contingency reserve and monitor costs",
    "schedule": "Identify critical activities and add schedule buffers",
    "resource": "Prepare an alternative resourcing plan",
    "external": "Open a communication channel with external stakeholders",
    "quality": "Add quality controls",
    "scope": "Document requirements and changes explicitly",
}
DEFAULT_STRATEGY = "Prepare a specific response plan"


def risk_score(probability: float, impact: float) -> float:
    return float(probability) * float(impact)


def priority_from_score(score: float) -> str:
    for bound, priority in PRIORITY_BANDS:
        if score >= bound:
            return priority
    return RiskPriority.LOW.value


def expected_monetary_value(probability: float, cost_impact: float) -> float:
    return float(probability) * float(cost_impact or 0.0)


@dataclass(frozen=True)
class RiskRegisterSummary:
    total: int = 0
    active: int = 0
    high_priority_active: int = 0
    active_exposure: float = 0.0
    average_active_score: float = 0.0
    mitigated: int = 0
    occurred: int = 0

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def summarize_risk_register(risks: Records) -> RiskRegisterSummary:
    """Headline counts for a register. Exposure is rounded to whole units."""
    records = normalize_records(risks, Risk)
    active = [r for r in records if r.status == RiskStatus.ACTIVE.value]
    exposure = sum(expected_monetary_value(r.probability, r.cost_impact) for r in active)
    avg_score = sum(r.risk_score for r in active) / len(active) if active else 0.0
    return RiskRegisterSummary(
        total=len(records),
        active=len(active),
        high_priority_active=sum(1 for r in active if r.priority == RiskPriority.HIGH.value),
        active_exposure=round_half_up(exposure, 0),
        average_active_score=float(avg_score),
        mitigated=sum(1 for r in records if r.status == RiskStatus.MITIGATED.value),
        occurred=sum(1 for r in records if r.actual_occurred),
    )


def exposure_level(expected_value: float, budget: float) -> str:
    pct = expected_value * 100 / budget if budget > 0 else 0.0
    for bound, level in EXPOSURE_LEVELS:
        if pct > bound:
            return level
    return "low"


def risk_exposure(risks: Records, budget: float) -> Dict[str, object]:
    """
    Expected monetary value of the given risks relative to a budget.

    Returns
    -------
    dict with total_expected_value, percentage_of_budget, risk_level
    """
    records = normalize_records(risks, Risk)
    total = sum(expected_monetary_value(r.probability, r.cost_impact) for r in records)
    return {
        "total_expected_value": float(total),
        "percentage_of_budget": float(total * 100 / budget) if budget > 0 else 0.0,
        "risk_level": exposure_level(total, budget),
    }


@dataclass
class RiskMatrix:
    total: int = 0
    by_priority: Dict[str, int] = field(default_factory=dict)
    total_expected_value: float = 0.0
    by_category: pd.DataFrame = field(default_factory=pd.DataFrame)
    by_phase: pd.DataFrame = field(default_factory=pd.DataFrame)


def _group_scores(df: pd.DataFrame, col: str) -> pd.DataFrame:
    keyed = df.assign(**{col: df[col].fillna("unspecified")})
    return (
        keyed.groupby(col, as_index=False)
        .agg(count=("score", "size"), total_score=("score", "sum"))
        .sort_values(col)
        .reset_index(drop=True)
    )


def analyze_risk_matrix(risks: Records) -> RiskMatrix:
    """
    Probability × impact view of a register.

    Priority here is recomputed from the score (probability × impact), not
    taken from the stored priority field, so it reflects current estimates.
    """
    df = records_to_frame(risks, Risk)
    counts = {p.value: 0 for p in RiskPriority}
    if df.empty:
        return RiskMatrix(by_priority=counts)

    df["score"] = df["probability"] * df["impact"]
    df["derived_priority"] = df["score"].map(priority_from_score)
    counts.update(df["derived_priority"].value_counts().to_dict())

    return RiskMatrix(
        total=len(df),
        by_priority={k: int(v) for k, v in counts.items()},
        total_expected_value=float((df["probability"] * df["cost_impact"]).sum()),
        by_category=_group_scores(df, "category"),
        by_phase=_group_scores(df, "phase"),
    )


def mitigation_recommendations(risks: Records) -> List[Dict[str, str]]:
    """One recommendation per risk whose score puts it in the high band."""
    out = []
    for r in normalize_records(risks, Risk):
        if priority_from_score(risk_score(r.probability, r.impact)) != RiskPriority.HIGH.value:
            continue
        out.append({
            "risk_id": r.id,
            "risk_name": r.name,
            "recommendation": MITIGATION_STRATEGIES.get((r.category or "").lower(), DEFAULT_STRATEGY),
            "priority": RiskPriority.HIGH.value,
        })
    return out
