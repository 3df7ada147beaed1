from __future__ import annotations

from dataclasses import dataclass

import numpy as np
import pandas as pd

from .model_trainer import TrainedModel


@dataclass
class Explanation:
    """Per-row TreeSHAP attributions on the raw (pre-link) model output.

    For every row ``baseline + contributions.sum(axis=1) == raw_score``.
    """

    contributions: pd.DataFrame
    baseline: np.ndarray
    raw_score: np.ndarray

    def summary(self) -> pd.DataFrame:
        """Mean absolute attribution per feature, largest first."""
        mean_abs = self.contributions.abs().mean(axis=0)
        return (
            mean_abs.sort_values(ascending=False, kind="mergesort")
            .rename("mean_abs_attribution")
            .rename_axis("feature")
            .reset_index()
        )

    def to_frame(self) -> pd.DataFrame:
        out = self.contributions.copy()
        out["baseline"] = self.baseline
        out["raw_score"] = self.raw_score
        return out


def explain(trained_model: TrainedModel, df: pd.DataFrame) -> Explanation:
    """Shapley decomposition of each row's raw score using LightGBM's TreeSHAP."""
    X = trained_model.features(df)
    booster = trained_model.estimator.booster_
    contrib = booster.predict(X.to_numpy(), pred_contrib=True)
    raw = booster.predict(X.to_numpy(), raw_score=True)
    return Explanation(
        contributions=pd.DataFrame(contrib[:, :-1], columns=X.columns, index=X.index),
        baseline=contrib[:, -1],
        raw_score=np.asarray(raw, dtype=float),
    )
