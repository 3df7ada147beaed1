from __future__ import annotations

import warnings
from dataclasses import dataclass
from typing import Any, Sequence

import numpy as np
import pandas as pd
from joblib import Parallel, delayed

from .exceptions import ConvergenceOrEmptyGridError, TrainingFailure
from .grid import grid_points
from .metrics import METRICS, check_metrics, compute_metrics
from .model_spec import OPTIONS, ModelSpec
from .model_trainer import ModelTrainer
from .recipe import FeatureRecipe
from .splitter import Split
from .utils.logger import get_logger

logger = get_logger("GridSearch")


def _run_unit(
    trainer: ModelTrainer,
    df: pd.DataFrame,
    grid_id: str,
    hyperparameters: dict[str, Any],
    fold: Split,
    metric_names: Sequence[str],
) -> dict[str, Any]:
    """Train and score one (grid point, fold) pair; failures become a recorded row."""
    row: dict[str, Any] = {"grid_id": grid_id, "fold": fold.fold, **hyperparameters}
    train_df = fold.training(df)
    val_df = fold.testing(df)
    row["n_train"] = len(train_df)
    row["n_validation"] = len(val_df)
    try:
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", UserWarning)
            trained = trainer.fit(train_df, hyperparameters)
            _, y_val = trained.recipe.apply(val_df)
            scores = trainer.predict_scores(trained, val_df)
            metrics = compute_metrics(metric_names, y_val, scores)
    except Exception as exc:
        failure = TrainingFailure(grid_id, fold.fold, exc)
        logger.warning(f"Training failed: {failure}")
        row.update({name: np.nan for name in metric_names})
        row.update(status="failed", error=str(failure))
        return row
    row.update(metrics)
    row.update(status="ok", error=None)
    return row


@dataclass
class SearchResult:
    """Per-(grid point, fold) metrics plus the grid and seed that produced them."""

    table: pd.DataFrame
    grid: pd.DataFrame
    metric_names: list[str]
    seed: int

    @classmethod
    def from_table(cls, table: pd.DataFrame, seed: int | None = None) -> "SearchResult":
        """Rebuild a result from a bare search table, e.g. one read back from CSV."""
        hyper = [c for c in table.columns if c in OPTIONS]
        metric_names = [c for c in table.columns if c in METRICS]
        grid = table[["grid_id"] + hyper].drop_duplicates("grid_id").reset_index(drop=True)
        if "status" not in table.columns:
            table = table.assign(status="ok", error=None)
        if seed is None:
            seed = table.attrs.get("seed", -1)
        return cls(table=table, grid=grid, metric_names=metric_names, seed=seed)

    @property
    def hyperparameter_names(self) -> list[str]:
        return [c for c in self.grid.columns if c != "grid_id"]

    def aggregate(self) -> pd.DataFrame:
        """Mean and standard error of each metric per grid point, in grid order.

        Failed folds are left out; grid points without a successful fold are dropped.
        """
        ok = self.table[self.table["status"] == "ok"]
        grouped = ok.groupby("grid_id", sort=False)
        summary = pd.DataFrame({"n_folds": grouped.size()})
        for name in self.metric_names:
            summary[f"{name}_mean"] = grouped[name].mean()
            std = grouped[name].std(ddof=1).fillna(0.0)
            summary[f"{name}_std_err"] = std / np.sqrt(summary["n_folds"])
        summary = summary.reset_index()
        summary = self.grid.merge(summary, on="grid_id", how="inner")
        return summary.reset_index(drop=True)

    def failures(self) -> pd.DataFrame:
        return self.table[self.table["status"] == "failed"]


class GridSearch:
    """Cross-validated search over a hyperparameter grid.

    Every (grid point, fold) unit fits the recipe and the model on the fold's
    training rows and scores the fold's validation rows. Units share nothing
    mutable, so they run through ``joblib.Parallel``.
    """

    def __init__(
        self,
        model_spec: ModelSpec,
        recipe: FeatureRecipe,
        metric_names: Sequence[str] | None = None,
        n_jobs: int = 1,
        seed: int = 42,
    ):
        self.model_spec = model_spec
        self.recipe = recipe
        self.metric_names = check_metrics(metric_names, model_spec.objective)
        self.n_jobs = n_jobs
        self.seed = seed
        self.logger = get_logger(self.__class__.__name__)

    def search(self, df: pd.DataFrame, grid: pd.DataFrame, cv_splits: Sequence[Split]) -> SearchResult:
        points = grid_points(grid)
        if not points:
            raise ConvergenceOrEmptyGridError("Hyperparameter grid is empty")
        if not cv_splits:
            raise ConvergenceOrEmptyGridError("No cross-validation folds were given")

        self.logger.info(
            f"Starting grid search: {len(points)} grid points x {len(cv_splits)} folds, "
            f"metrics={self.metric_names}, n_jobs={self.n_jobs}, seed={self.seed}"
        )
        trainer = ModelTrainer(self.model_spec, self.recipe, random_state=self.seed)

        rows = Parallel(n_jobs=self.n_jobs)(
            delayed(_run_unit)(trainer, df, grid_id, params, fold, self.metric_names)
            for grid_id, params in points
            for fold in cv_splits
        )
        table = pd.DataFrame(rows)
        table.attrs["seed"] = self.seed

        result = SearchResult(table=table, grid=grid, metric_names=list(self.metric_names), seed=self.seed)
        n_failed = len(result.failures())
        if n_failed:
            self.logger.warning(f"{n_failed} of {len(table)} training runs failed")
        if result.aggregate().empty:
            raise ConvergenceOrEmptyGridError(
                f"All {len(table)} training runs failed; first error: {table['error'].iloc[0]}"
            )
        self.logger.info(f"Grid search finished: {len(table)} runs, {n_failed} failed")
        return result
