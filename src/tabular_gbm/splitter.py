from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd

from .exceptions import InvalidKError, InvalidProportionError, MissingColumnError


@dataclass(frozen=True)
class Split:
    """Two disjoint sets of rows of one dataset.

    ``train`` and ``held_out`` are index labels; ``train_rows`` and
    ``held_out_rows`` are the row positions they were cut from. Rows are read
    back by position, so a repeated index label never lands on both sides.

    For the top-level split ``held_out`` is the test partition; for a
    cross-validation fold it holds the fold's validation rows.
    """

    train: np.ndarray
    held_out: np.ndarray
    train_rows: np.ndarray
    held_out_rows: np.ndarray
    fold: str = "split"

    def training(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.train_rows]

    def testing(self, df: pd.DataFrame) -> pd.DataFrame:
        return df.iloc[self.held_out_rows]


def _make_split(df: pd.DataFrame, train_pos: np.ndarray, held_pos: np.ndarray, fold: str = "split") -> Split:
    labels = df.index.to_numpy()
    return Split(
        train=labels[train_pos],
        held_out=labels[held_pos],
        train_rows=train_pos,
        held_out_rows=held_pos,
        fold=fold,
    )


def _n_train(n: int, proportion: float) -> int:
    # both sides non-empty whenever n >= 2
    return int(min(max(round(proportion * n), 1), n - 1))


def _allocate(sizes: list[int], total: int, proportion: float) -> np.ndarray:
    """Share ``total`` training rows across groups by largest remainder."""
    quotas = proportion * np.asarray(sizes, dtype=float)
    counts = np.floor(quotas).astype(int)
    remainders = quotas - counts
    # ties go to the earlier (sorted) label
    order = np.argsort(-remainders, kind="stable")
    counts[order[: total - counts.sum()]] += 1
    return counts


def _groups(df: pd.DataFrame, stratify_by: Optional[str]) -> list[np.ndarray]:
    """Row positions grouped by label value (sorted), or one group of all rows."""
    if stratify_by is None:
        return [np.arange(len(df))]
    if stratify_by not in df.columns:
        raise MissingColumnError(f"Stratification column {stratify_by!r} not in dataset")
    labels = df[stratify_by].astype(str).to_numpy()
    return [np.flatnonzero(labels == value) for value in np.unique(labels)]


def split(
    df: pd.DataFrame,
    proportion: float = 0.75,
    seed: int = 42,
    stratify_by: Optional[str] = None,
) -> Split:
    """Seeded train/held-out split taking round(proportion * n) rows for training.

    With ``stratify_by`` that total is shared across label groups by largest
    remainder, so each group contributes its share within one row.
    """
    if not 0 < proportion < 1:
        raise InvalidProportionError(f"Split proportion must be in (0, 1), got {proportion}")
    if len(df) < 2:
        raise InvalidProportionError(f"Cannot split a dataset of {len(df)} rows")

    rng = np.random.default_rng(seed)
    groups = _groups(df, stratify_by)
    counts = _allocate([len(g) for g in groups], _n_train(len(df), proportion), proportion)

    train_pos, held_pos = [], []
    for group, cut in zip(groups, counts):
        permuted = rng.permutation(group)
        train_pos.append(permuted[:cut])
        held_pos.append(permuted[cut:])

    return _make_split(df, np.concatenate(train_pos), np.concatenate(held_pos))


def kfold(
    df: pd.DataFrame,
    k: int = 5,
    seed: int = 42,
    stratify_by: Optional[str] = None,
) -> list[Split]:
    """Seeded K-fold partition of ``df``.

    Each label group (or the whole frame) is permuted and cut into ``k``
    near-equal chunks; fold ``i`` validates on the union of chunk ``i`` across
    groups and trains on everything else.
    """
    if k < 2 or k > len(df):
        raise InvalidKError(f"Fold count must be in [2, {len(df)}], got {k}")

    rng = np.random.default_rng(seed)
    chunks: list[list[np.ndarray]] = [[] for _ in range(k)]
    for group in _groups(df, stratify_by):
        for i, piece in enumerate(np.array_split(rng.permutation(group), k)):
            chunks[i].append(piece)

    all_pos = np.arange(len(df))
    width = len(str(k))
    folds = []
    for i, pieces in enumerate(chunks):
        val_pos = np.sort(np.concatenate(pieces))
        train_pos = np.setdiff1d(all_pos, val_pos, assume_unique=True)
        folds.append(_make_split(df, train_pos, val_pos, fold=f"Fold{i + 1:0{width}d}"))
    return folds
