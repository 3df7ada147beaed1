"""Hyperparameter grid generation.

A grid is a DataFrame with a ``grid_id`` column in generation order and one
column per tuned option. Points are never de-duplicated: two rows with equal
values are still separate grid points.
"""

from __future__ import annotations

import itertools
from typing import Any, Iterable, Mapping

import numpy as np
import pandas as pd
from scipy.stats import qmc

from .exceptions import ConvergenceOrEmptyGridError
from .model_spec import HyperparameterRange, is_integer

GRID_TYPES = ("latin_hypercube", "random", "regular")


def _grid_frame(rows: list[dict[str, Any]], names: list[str]) -> pd.DataFrame:
    if not rows:
        raise ConvergenceOrEmptyGridError("Hyperparameter grid is empty")
    width = max(3, len(str(len(rows))))
    grid = pd.DataFrame(rows, columns=names)
    grid.insert(0, "grid_id", [f"grid_{i + 1:0{width}d}" for i in range(len(rows))])
    return grid


def _scale(unit: np.ndarray, name: str, rng_: HyperparameterRange):
    """Map [0, 1) samples onto a range; integer options get equal-width bins."""
    if is_integer(name):
        low, high = int(np.ceil(rng_.low)), int(np.floor(rng_.high))
        values = np.floor(low + unit * (high - low + 1)).astype(int)
        return np.clip(values, low, high).tolist()
    if rng_.log:
        lo, hi = np.log(rng_.low), np.log(rng_.high)
        return np.exp(lo + unit * (hi - lo)).tolist()
    return (rng_.low + unit * (rng_.high - rng_.low)).tolist()


def _from_unit(sample: np.ndarray, ranges: Mapping[str, HyperparameterRange]) -> pd.DataFrame:
    names = list(ranges)
    columns = {name: _scale(sample[:, j], name, ranges[name]) for j, name in enumerate(names)}
    rows = [{name: columns[name][i] for name in names} for i in range(sample.shape[0])]
    return _grid_frame(rows, names)


def _check(ranges: Mapping[str, Any], size: int) -> dict[str, HyperparameterRange]:
    if not ranges:
        raise ConvergenceOrEmptyGridError("No tunable hyperparameters to build a grid from")
    if size < 1:
        raise ConvergenceOrEmptyGridError(f"Grid size must be positive, got {size}")
    return {k: HyperparameterRange.parse(v) for k, v in ranges.items()}


def latin_hypercube_grid(ranges: Mapping[str, Any], size: int, seed: int = 42) -> pd.DataFrame:
    """Space-filling grid: each dimension's range is cut into ``size`` strata, one sample each."""
    ranges = _check(ranges, size)
    sampler = qmc.LatinHypercube(d=len(ranges), seed=seed)
    return _from_unit(sampler.random(n=size), ranges)


def random_grid(ranges: Mapping[str, Any], size: int, seed: int = 42) -> pd.DataFrame:
    ranges = _check(ranges, size)
    rng = np.random.default_rng(seed)
    return _from_unit(rng.random((size, len(ranges))), ranges)


def regular_grid(ranges: Mapping[str, Any], levels: int = 3) -> pd.DataFrame:
    """Cartesian product of ``levels`` evenly spaced values per option."""
    ranges = _check(ranges, levels)
    axes = {}
    for name, r in ranges.items():
        if r.log:
            values = np.exp(np.linspace(np.log(r.low), np.log(r.high), levels))
        else:
            values = np.linspace(r.low, r.high, levels)
        if is_integer(name):
            values = np.unique(np.round(values).astype(int))
        axes[name] = values.tolist()
    names = list(axes)
    rows = [dict(zip(names, combo)) for combo in itertools.product(*axes.values())]
    return _grid_frame(rows, names)


def as_grid(points: Iterable[Mapping[str, Any]] | pd.DataFrame) -> pd.DataFrame:
    """Turn an explicit list of hyperparameter mappings into a grid frame."""
    if isinstance(points, pd.DataFrame):
        frame = points.drop(columns=["grid_id"], errors="ignore")
        rows = frame.to_dict(orient="records")
        names = list(frame.columns)
    else:
        rows = [dict(p) for p in points]
        names = list(dict.fromkeys(k for row in rows for k in row))
    return _grid_frame(rows, names)


def make_grid(
    ranges: Mapping[str, Any],
    grid_type: str = "latin_hypercube",
    size: int = 10,
    seed: int = 42,
    levels: int = 3,
) -> pd.DataFrame:
    if grid_type == "latin_hypercube":
        return latin_hypercube_grid(ranges, size, seed)
    if grid_type == "random":
        return random_grid(ranges, size, seed)
    if grid_type == "regular":
        return regular_grid(ranges, levels)
    raise ValueError(f"Unknown grid type {grid_type!r}; expected one of {GRID_TYPES}")


def grid_points(grid: pd.DataFrame) -> list[tuple[str, dict[str, Any]]]:
    """``(grid_id, hyperparameters)`` pairs in generation order."""
    names = [c for c in grid.columns if c != "grid_id"]
    points = []
    for row in grid.itertuples(index=False):
        values = row._asdict()
        points.append((values["grid_id"], {n: values[n] for n in names}))
    return points
