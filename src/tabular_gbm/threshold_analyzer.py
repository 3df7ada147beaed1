from __future__ import annotations

import numpy as np
import pandas as pd
from sklearn.metrics import f1_score, precision_recall_curve, precision_score, recall_score, roc_curve

from .utils.logger import get_logger


def roc_curve_table(y_true, y_proba) -> pd.DataFrame:
    """ROC points ordered by decreasing threshold."""
    fpr, tpr, thresholds = roc_curve(np.asarray(y_true).astype(int), np.asarray(y_proba, dtype=float))
    return pd.DataFrame({"threshold": thresholds, "fpr": fpr, "tpr": tpr})


def pr_curve_table(y_true, y_proba) -> pd.DataFrame:
    """Precision-recall points ordered by increasing threshold.

    sklearn returns one more precision/recall point than thresholds (recall 0,
    precision 1); it is kept with an infinite threshold.
    """
    precision, recall, thresholds = precision_recall_curve(
        np.asarray(y_true).astype(int), np.asarray(y_proba, dtype=float)
    )
    thresholds = np.append(thresholds, np.inf)
    return pd.DataFrame({"threshold": thresholds, "recall": recall, "precision": precision})


def calibration_table(y_true, y_pred, n_buckets: int = 4) -> pd.DataFrame:
    """Observed vs predicted mean in ``n_buckets`` equal-sized groups ordered by prediction."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    if n_buckets < 1:
        raise ValueError(f"n_buckets must be positive, got {n_buckets}")
    n_buckets = min(n_buckets, len(y_pred))

    order = np.argsort(y_pred, kind="mergesort")
    rows = []
    for bucket, idx in enumerate(np.array_split(order, n_buckets), start=1):
        rows.append(
            {
                "bucket": bucket,
                "n": len(idx),
                "predicted_min": float(y_pred[idx].min()),
                "predicted_max": float(y_pred[idx].max()),
                "predicted_mean": float(y_pred[idx].mean()),
                "observed_mean": float(y_true[idx].mean()),
            }
        )
    return pd.DataFrame(rows)


class ThresholdAnalyzer:
    """Sweep probability thresholds and report precision/recall/F1 trade-offs."""

    def __init__(self, step: float = 0.05, verbose: bool = True):
        self.step = step
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def sweep(self, y_true, y_proba) -> pd.DataFrame:
        y_true = np.asarray(y_true).astype(int)
        y_proba = np.asarray(y_proba).astype(float)

        rows = []
        for thr in np.arange(self.step, 1.0, self.step):
            y_pred = (y_proba >= thr).astype(int)
            rows.append(
                {
                    "threshold": round(float(thr), 10),
                    "precision": float(precision_score(y_true, y_pred, zero_division=0)),
                    "recall": float(recall_score(y_true, y_pred, zero_division=0)),
                    "f1": float(f1_score(y_true, y_pred, zero_division=0)),
                }
            )
        return pd.DataFrame(rows)

    def run(self, y_true, y_proba) -> tuple[pd.DataFrame, float]:
        """Return the sweep table and the threshold with the best F1 (first on ties)."""
        table = self.sweep(y_true, y_proba)
        best_idx = int(np.argmax(table["f1"].to_numpy()))
        best_thr = float(table.loc[best_idx, "threshold"])

        if self.verbose:
            self.logger.info(f"Best F1 threshold: {best_thr:.3f} (F1={table.loc[best_idx, 'f1']:.3f})")

        return table, best_thr
