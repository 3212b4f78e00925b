"""
Task cost spreading policies for the planned-expense curve.

A policy turns task rows (cost, start_date, end_date, is_milestone) and a
list of month windows into an (n_tasks × n_months) allocation matrix.

  FullCostPerMonth  full cost in every month the task overlaps (default;
                    a task spanning 3 months is counted 3 times)
  ProRatedByDays    cost split by the share of the task's days in each month

Milestones are point events: under both policies they count once, in the
month containing their start date. Rows missing a date get all zeros.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

Windows = List[Tuple[pd.Timestamp, pd.Timestamp]]


def _window_bounds(windows: Windows) -> Tuple[np.ndarray, np.ndarray]:
    begins = np.array([w[0] for w in windows], dtype="datetime64[ns]")[None, :]
    ends = np.array([w[1] for w in windows], dtype="datetime64[ns]")[None, :]
    return begins, ends


def _column(tasks: pd.DataFrame, name: str) -> np.ndarray:
    return tasks[name].to_numpy(dtype="datetime64[ns]")[:, None]


def _milestone_mask(tasks: pd.DataFrame, windows: Windows) -> np.ndarray:
    begins, ends = _window_bounds(windows)
    start = _column(tasks, "start_date")
    return (start >= begins) & (start <= ends)


class TaskCostSpread:
    """Interface for allocating task cost to month windows."""

    name: str = "base"

    def allocate(self, tasks: pd.DataFrame, windows: Windows) -> np.ndarray:
        raise NotImplementedError

    def _finish(self, tasks: pd.DataFrame, windows: Windows, share: np.ndarray) -> np.ndarray:
        """Apply the milestone rule and scale shares by task cost."""
        cost = tasks["cost"].to_numpy(dtype=float)[:, None]
        milestone = tasks["is_milestone"].fillna(False).to_numpy(dtype=bool)[:, None]
        share = np.where(milestone, _milestone_mask(tasks, windows).astype(float), share)
        return cost * share


@dataclass(frozen=True)
class FullCostPerMonth(TaskCostSpread):
    name: str = "full"

    def allocate(self, tasks: pd.DataFrame, windows: Windows) -> np.ndarray:
        if tasks.empty or not windows:
            return np.zeros((len(tasks), len(windows)))
        begins, ends = _window_bounds(windows)
        start = _column(tasks, "start_date")
        end = _column(tasks, "end_date")
        overlaps = (start <= ends) & (end >= begins)
        return self._finish(tasks, windows, overlaps.astype(float))


@dataclass(frozen=True)
class ProRatedByDays(TaskCostSpread):
    """
    Inclusive day counts: a task from Jan 30 to Feb 2 has 4 days, 2 in each
    month. Days falling outside the horizon are simply not allocated.
    """
    name: str = "prorated"

    def allocate(self, tasks: pd.DataFrame, windows: Windows) -> np.ndarray:
        if tasks.empty or not windows:
            return np.zeros((len(tasks), len(windows)))
        begins, ends = _window_bounds(windows)
        start = _column(tasks, "start_date")
        end = _column(tasks, "end_date")
        one_day = np.timedelta64(1, "D")

        lo = np.maximum(start, begins)
        hi = np.minimum(end, ends)
        overlap_days = np.clip((hi - lo + one_day) / one_day, 0.0, None)
        task_days = (end - start + one_day) / one_day

        share = np.divide(
            overlap_days, task_days,
            out=np.zeros_like(overlap_days), where=task_days > 0,
        )
        share = np.nan_to_num(share, nan=0.0)
        return self._finish(tasks, windows, share)


SPREADS: Dict[str, TaskCostSpread] = {
    FullCostPerMonth.name: FullCostPerMonth(),
    ProRatedByDays.name: ProRatedByDays(),
}


def get_spread(name: str) -> TaskCostSpread:
    try:
        return SPREADS[name]
    except KeyError:
        raise ValueError(f"Unknown task spread {name!r}; expected one of {sorted(SPREADS)}") from None
