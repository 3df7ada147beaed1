import numpy as np
import pandas as pd
import pytest

from tabular_gbm.exceptions import ConvergenceOrEmptyGridError
from tabular_gbm.grid import as_grid, grid_points, latin_hypercube_grid, make_grid, random_grid, regular_grid

RANGES = {"max_depth": [2, 6], "min_leaf_samples": [1, 15]}


def test_latin_hypercube_grid_has_requested_size_and_ids():
    grid = latin_hypercube_grid(RANGES, size=25, seed=1234)
    assert len(grid) == 25
    assert list(grid.columns) == ["grid_id", "max_depth", "min_leaf_samples"]
    assert grid["grid_id"].iloc[0] == "grid_001"
    assert grid["grid_id"].is_unique


def test_latin_hypercube_grid_respects_integer_bounds():
    grid = latin_hypercube_grid(RANGES, size=25, seed=1234)
    assert grid["max_depth"].between(2, 6).all()
    assert grid["min_leaf_samples"].between(1, 15).all()
    assert pd.api.types.is_integer_dtype(grid["max_depth"])


def test_latin_hypercube_grid_fills_every_stratum():
    # 25 samples over 5 integer depths: one stratum per sample means 5 per depth
    grid = latin_hypercube_grid(RANGES, size=25, seed=1234)
    assert grid["max_depth"].value_counts().to_dict() == {d: 5 for d in range(2, 7)}


def test_latin_hypercube_grid_is_deterministic():
    a = latin_hypercube_grid(RANGES, size=25, seed=1234)
    b = latin_hypercube_grid(RANGES, size=25, seed=1234)
    pd.testing.assert_frame_equal(a, b)


def test_log_scaled_float_range():
    grid = latin_hypercube_grid({"learning_rate": {"low": 0.001, "high": 0.3, "log": True}}, size=40, seed=0)
    lr = grid["learning_rate"]
    assert lr.between(0.001, 0.3).all()
    # a log scale puts about half the samples below the geometric mean
    assert (lr < np.sqrt(0.001 * 0.3)).sum() == 20


def test_random_grid_within_bounds():
    grid = random_grid({"subsample_fraction": [0.5, 1.0]}, size=10, seed=3)
    assert len(grid) == 10
    assert grid["subsample_fraction"].between(0.5, 1.0).all()


def test_regular_grid_is_cartesian_product():
    grid = regular_grid(RANGES, levels=3)
    assert len(grid) == 9
    assert sorted(grid["max_depth"].unique()) == [2, 4, 6]


def test_as_grid_keeps_explicit_points_in_order():
    grid = as_grid([{"max_depth": 3, "min_leaf_samples": 5}, {"max_depth": 3, "min_leaf_samples": 5}])
    assert grid["grid_id"].tolist() == ["grid_001", "grid_002"]
    assert grid_points(grid) == [
        ("grid_001", {"max_depth": 3, "min_leaf_samples": 5}),
        ("grid_002", {"max_depth": 3, "min_leaf_samples": 5}),
    ]


def test_empty_grid_is_rejected():
    with pytest.raises(ConvergenceOrEmptyGridError):
        as_grid([])
    with pytest.raises(ConvergenceOrEmptyGridError):
        latin_hypercube_grid({}, size=5)


def test_make_grid_rejects_unknown_type():
    with pytest.raises(ValueError):
        make_grid(RANGES, grid_type="sobol")
