import numpy as np
import pandas as pd
import pytest

from tabular_gbm.exceptions import ConvergenceOrEmptyGridError
from tabular_gbm.grid import as_grid, latin_hypercube_grid
from tabular_gbm.hyper_tuner import GridSearch, SearchResult
from tabular_gbm.model_spec import ModelSpec
from tabular_gbm.model_trainer import ModelTrainer
from tabular_gbm.selector import select_best
from tabular_gbm.splitter import kfold, split

RANGES = {"max_depth": [2, 6], "min_leaf_samples": [1, 15]}


def _regression_spec():
    return ModelSpec(
        objective="regression",
        fixed={"tree_count": 15, "learning_rate": 0.3},
        tunable=RANGES,
    )


def _train_and_folds(df, seed=1234, stratify_by=None):
    train = split(df, 0.75, seed=seed, stratify_by=stratify_by).training(df)
    return train, kfold(train, 5, seed=seed, stratify_by=stratify_by)


def test_regression_search_table_shape(regression_df, regression_recipe):
    """345 rows, 0.75 split, 5 folds, 25-point grid: 125 unit rows, 25 aggregated."""
    assert regression_df.shape == (345, 6)
    train, folds = _train_and_folds(regression_df)
    grid = latin_hypercube_grid(RANGES, size=25, seed=1234)

    result = GridSearch(_regression_spec(), regression_recipe, ["rmse", "rsq"], seed=1234).search(
        train, grid, folds
    )

    assert len(result.table) == 125
    assert (result.table["status"] == "ok").all()
    assert result.table.attrs["seed"] == 1234
    assert result.seed == 1234

    summary = result.aggregate()
    assert len(summary) == 25
    assert summary["grid_id"].tolist() == grid["grid_id"].tolist()
    assert (summary["n_folds"] == 5).all()
    assert {"rmse_mean", "rmse_std_err", "rsq_mean", "rsq_std_err"} <= set(summary.columns)


def test_each_unit_validates_on_its_own_fold(regression_df, regression_recipe):
    train, folds = _train_and_folds(regression_df)
    grid = as_grid([{"max_depth": 3, "min_leaf_samples": 5}])
    result = GridSearch(_regression_spec(), regression_recipe, ["rmse"]).search(train, grid, folds)

    assert result.table["fold"].tolist() == [f.fold for f in folds]
    assert result.table["n_validation"].tolist() == [len(f.held_out) for f in folds]
    assert (result.table["n_train"] + result.table["n_validation"] == len(train)).all()


def test_search_is_reproducible(regression_df, regression_recipe):
    def run():
        train, folds = _train_and_folds(regression_df, seed=99)
        grid = latin_hypercube_grid(RANGES, size=4, seed=99)
        result = GridSearch(_regression_spec(), regression_recipe, ["rmse"], seed=99).search(train, grid, folds)
        return folds, grid, result

    folds_a, grid_a, res_a = run()
    folds_b, grid_b, res_b = run()

    for fa, fb in zip(folds_a, folds_b):
        np.testing.assert_array_equal(fa.held_out, fb.held_out)
    pd.testing.assert_frame_equal(grid_a, grid_b)
    pd.testing.assert_frame_equal(res_a.table, res_b.table)
    assert select_best(res_a, "rmse") == select_best(res_b, "rmse")


def test_parallel_search_matches_sequential(regression_df, regression_recipe):
    train, folds = _train_and_folds(regression_df)
    grid = latin_hypercube_grid(RANGES, size=3, seed=5)
    spec = _regression_spec()
    seq = GridSearch(spec, regression_recipe, ["rmse"], n_jobs=1).search(train, grid, folds)
    par = GridSearch(spec, regression_recipe, ["rmse"], n_jobs=2).search(train, grid, folds)
    pd.testing.assert_frame_equal(seq.table, par.table)


def test_classification_search_scores_probabilities(classification_df, classification_recipe):
    train, folds = _train_and_folds(classification_df, stratify_by="class")
    spec = ModelSpec(objective="binary", fixed={"tree_count": 20}, tunable={"max_depth": [1, 3]})
    grid = latin_hypercube_grid(spec.tunable, size=3, seed=1)

    result = GridSearch(spec, classification_recipe, ["roc_auc", "accuracy"]).search(train, grid, folds)

    assert len(result.table) == 15
    assert result.table["roc_auc"].between(0, 1).all()


def test_failed_unit_is_recorded_and_excluded(regression_df, regression_recipe, monkeypatch):
    original_fit = ModelTrainer.fit
    calls = {"n": 0}

    def flaky_fit(self, train_df, hyperparameters):
        calls["n"] += 1
        if calls["n"] == 1:
            raise RuntimeError("degenerate fold")
        return original_fit(self, train_df, hyperparameters)

    monkeypatch.setattr(ModelTrainer, "fit", flaky_fit)
    train, folds = _train_and_folds(regression_df)
    grid = as_grid([{"max_depth": 2, "min_leaf_samples": 5}, {"max_depth": 4, "min_leaf_samples": 5}])

    result = GridSearch(_regression_spec(), regression_recipe, ["rmse"]).search(train, grid, folds)

    failed = result.failures()
    assert len(failed) == 1
    assert failed.iloc[0]["grid_id"] == "grid_001"
    assert "degenerate fold" in failed.iloc[0]["error"]
    assert np.isnan(failed.iloc[0]["rmse"])

    summary = result.aggregate().set_index("grid_id")
    assert summary.loc["grid_001", "n_folds"] == 4
    assert summary.loc["grid_002", "n_folds"] == 5


def test_grid_point_with_no_successful_fold_is_dropped():
    table = pd.DataFrame(
        {
            "grid_id": ["grid_001"] * 2 + ["grid_002"] * 2,
            "fold": ["Fold1", "Fold2"] * 2,
            "max_depth": [2, 2, 4, 4],
            "rmse": [np.nan, np.nan, 1.0, 1.2],
            "status": ["failed", "failed", "ok", "ok"],
            "error": ["x", "x", None, None],
        }
    )
    summary = SearchResult.from_table(table).aggregate()
    assert summary["grid_id"].tolist() == ["grid_002"]
    assert summary["rmse_mean"].iloc[0] == pytest.approx(1.1)


def test_all_units_failing_raises(regression_df, regression_recipe, monkeypatch):
    def broken_fit(self, train_df, hyperparameters):
        raise ValueError("no usable rows")

    monkeypatch.setattr(ModelTrainer, "fit", broken_fit)
    train, folds = _train_and_folds(regression_df)
    grid = as_grid([{"max_depth": 2, "min_leaf_samples": 5}])
    with pytest.raises(ConvergenceOrEmptyGridError, match="no usable rows"):
        GridSearch(_regression_spec(), regression_recipe, ["rmse"]).search(train, grid, folds)


def test_metric_must_match_objective(regression_recipe):
    with pytest.raises(ValueError, match="binary"):
        GridSearch(_regression_spec(), regression_recipe, ["roc_auc"])
