from __future__ import annotations

from typing import Any, Optional, Union

import pandas as pd

from .exceptions import ConvergenceOrEmptyGridError
from .hyper_tuner import SearchResult
from .metrics import DIRECTIONS, default_direction
from .model_spec import ModelSpec
from .model_trainer import ModelTrainer, TrainedModel
from .recipe import FeatureRecipe
from .utils.logger import get_logger

SearchLike = Union[SearchResult, pd.DataFrame]

logger = get_logger("ModelSelector")


def _as_result(result: SearchLike) -> SearchResult:
    if isinstance(result, pd.DataFrame):
        return SearchResult.from_table(result)
    return result


def _ranked(result: SearchResult, metric_name: str, direction: Optional[str]) -> pd.DataFrame:
    if metric_name not in result.metric_names:
        raise ValueError(f"Metric {metric_name!r} was not computed; available: {result.metric_names}")
    direction = direction or default_direction(metric_name)
    if direction not in DIRECTIONS:
        raise ValueError(f"Direction must be one of {DIRECTIONS}, got {direction!r}")

    summary = result.aggregate()
    if summary.empty:
        raise ConvergenceOrEmptyGridError("No grid point has a successful fold")
    # stable sort keeps generation order among ties
    return summary.sort_values(
        f"{metric_name}_mean", ascending=direction == "minimize", kind="mergesort"
    ).reset_index(drop=True)


def show_best(
    result: SearchLike, metric_name: str, n: int = 5, direction: Optional[str] = None
) -> pd.DataFrame:
    """Top ``n`` aggregated grid points by ``metric_name``."""
    return _ranked(_as_result(result), metric_name, direction).head(n)


def select_best(
    result: SearchLike, metric_name: str, direction: Optional[str] = None
) -> dict[str, Any]:
    """Hyperparameters of the grid point with the best mean metric.

    ``direction`` defaults to the metric's own (``minimize`` for error metrics).
    Ties go to the grid point generated first.
    """
    result = _as_result(result)
    best = _ranked(result, metric_name, direction).iloc[0]
    params = {name: best[name] for name in result.hyperparameter_names}
    params = {k: v.item() if hasattr(v, "item") else v for k, v in params.items()}
    logger.info(
        f"Selected {best['grid_id']} by {metric_name}={best[f'{metric_name}_mean']:.4f}: {params}"
    )
    return params


def finalize(
    model_spec: ModelSpec,
    hyperparameters: dict[str, Any],
    recipe: FeatureRecipe,
    train_df: pd.DataFrame,
    seed: int = 42,
) -> TrainedModel:
    """Refit the recipe and the model on the whole training partition."""
    trained = ModelTrainer(model_spec, recipe, random_state=seed).fit(train_df, hyperparameters)
    logger.info(
        f"Final model fit on {len(train_df):,} rows with {len(trained.feature_names)} features"
    )
    return trained
