"""Named metrics with their optimization direction.

Regression metrics score point predictions; classification metrics score
positive-class probabilities (``accuracy`` thresholds them at 0.5).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

import numpy as np
from sklearn.metrics import (
    accuracy_score,
    average_precision_score,
    brier_score_loss,
    log_loss,
    mean_absolute_error,
    mean_squared_error,
    r2_score,
    roc_auc_score,
)


@dataclass(frozen=True)
class Metric:
    name: str
    fn: Callable[[np.ndarray, np.ndarray], float]
    direction: str
    objective: str


def _rmse(y_true, y_pred) -> float:
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def _accuracy(y_true, y_proba) -> float:
    return float(accuracy_score(y_true, (np.asarray(y_proba) >= 0.5).astype(int)))


def _log_loss(y_true, y_proba) -> float:
    return float(log_loss(y_true, y_proba, labels=[0, 1]))


METRICS: dict[str, Metric] = {
    m.name: m
    for m in (
        Metric("rmse", _rmse, "minimize", "regression"),
        Metric("mae", mean_absolute_error, "minimize", "regression"),
        Metric("rsq", r2_score, "maximize", "regression"),
        Metric("roc_auc", roc_auc_score, "maximize", "binary"),
        Metric("pr_auc", average_precision_score, "maximize", "binary"),
        Metric("accuracy", _accuracy, "maximize", "binary"),
        Metric("log_loss", _log_loss, "minimize", "binary"),
        Metric("brier", brier_score_loss, "minimize", "binary"),
    )
}

DIRECTIONS = ("minimize", "maximize")

DEFAULT_METRICS = {
    "regression": ("rmse", "rsq", "mae"),
    "binary": ("roc_auc", "pr_auc", "accuracy"),
}


def get_metric(name: str) -> Metric:
    try:
        return METRICS[name]
    except KeyError:
        raise ValueError(f"Unknown metric {name!r}; expected one of {sorted(METRICS)}") from None


def check_metrics(names, objective: str) -> list[str]:
    """Validate metric names against the objective and return them as a list."""
    names = list(names) if names else list(DEFAULT_METRICS[objective])
    for name in names:
        metric = get_metric(name)
        if metric.objective != objective:
            raise ValueError(f"Metric {name!r} is for {metric.objective} models, not {objective}")
    return names


def compute_metrics(names, y_true, y_score) -> dict[str, float]:
    """``y_score`` is the point prediction (regression) or positive-class probability."""
    y_true = np.asarray(y_true)
    y_score = np.asarray(y_score, dtype=float)
    return {name: float(get_metric(name).fn(y_true, y_score)) for name in names}


def default_direction(name: str) -> str:
    return get_metric(name).direction
