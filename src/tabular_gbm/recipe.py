from __future__ import annotations

import warnings
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.base import TransformerMixin
from sklearn.impute import SimpleImputer
from sklearn.preprocessing import OneHotEncoder, OrdinalEncoder

from .exceptions import MissingColumnError, RecipeError, UnseenCategoryWarning
from .utils.logger import get_logger

IMPUTERS = ("impute_mean", "impute_median", "impute_mode")
ENCODERS = ("ordinal", "dummy")
STEP_KINDS = IMPUTERS + ENCODERS + ("drop",)

IMPUTE_STRATEGIES = {
    "impute_mean": "mean",
    "impute_median": "median",
    "impute_mode": "most_frequent",
}

logger = get_logger("FeatureRecipe")


@dataclass(frozen=True)
class RecipeStep:
    """One declarative transformation applied to ``columns``.

    ``levels`` fixes the order for an ordinal step; ``reference`` picks the
    held-out level of a dummy step.
    """

    kind: str
    columns: tuple
    levels: Optional[tuple] = None
    reference: Any = None

    def __post_init__(self):
        if self.kind not in STEP_KINDS:
            raise RecipeError(f"Unknown step {self.kind!r}; expected one of {STEP_KINDS}")
        if not self.columns:
            raise RecipeError(f"Step {self.kind!r} has no columns")

    @classmethod
    def from_dict(cls, spec: Mapping[str, Any]) -> "RecipeStep":
        columns = spec["columns"]
        if isinstance(columns, str):
            columns = [columns]
        levels = spec.get("levels")
        return cls(
            kind=spec["step"],
            columns=tuple(columns),
            levels=tuple(levels) if levels is not None else None,
            reference=spec.get("reference"),
        )


def _as_steps(steps: Iterable[RecipeStep | Mapping[str, Any]]) -> tuple:
    return tuple(s if isinstance(s, RecipeStep) else RecipeStep.from_dict(s) for s in steps)


def _sorted_levels(series: pd.Series) -> list:
    values = series.dropna().unique().tolist()
    try:
        return sorted(values)
    except TypeError:
        return sorted(values, key=str)


def _require(df: pd.DataFrame, columns: Iterable[str], where: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise MissingColumnError(f"{where}: columns {missing} not in dataset")


def _as_object(frame: pd.DataFrame) -> pd.DataFrame:
    """Object-dtype copy with NaN as the only missing marker, as the sklearn encoders expect."""
    return frame.astype(object).where(frame.notna(), np.nan)


def _warn_unseen(column: str, series: pd.Series, levels: Sequence[Any], encoded_as: str) -> None:
    unseen = series.notna() & ~series.isin(list(levels))
    if not unseen.any():
        return
    values = series[unseen].tolist()
    shown = sorted({str(v) for v in values})[:5]
    msg = f"Column {column!r}: {len(values)} value(s) with unseen level(s) {shown} encoded as {encoded_as}"
    logger.warning(msg)
    warnings.warn(msg, UnseenCategoryWarning, stacklevel=4)


def _replace_column(work: pd.DataFrame, column: str, new: pd.DataFrame) -> pd.DataFrame:
    """Put the columns of ``new`` where ``column`` was."""
    pos = work.columns.get_loc(column)
    return pd.concat([work.iloc[:, :pos], new, work.iloc[:, pos + 1:]], axis=1)


def _learn(step: RecipeStep, work: pd.DataFrame) -> Optional[TransformerMixin]:
    """Fit the scikit-learn transformer behind ``step`` on training rows."""
    cols = list(step.columns)
    frame = work[cols]

    if step.kind in ("impute_mean", "impute_median"):
        for col in cols:
            if not pd.api.types.is_numeric_dtype(frame[col]):
                raise RecipeError(f"{step.kind} needs a numeric column; {col!r} is {frame[col].dtype}")
        imputer = SimpleImputer(strategy=IMPUTE_STRATEGIES[step.kind], keep_empty_features=True)
        return imputer.fit(frame.astype(float))

    if step.kind == "impute_mode":
        imputer = SimpleImputer(strategy="most_frequent", keep_empty_features=True)
        return imputer.fit(_as_object(frame))

    if step.kind == "ordinal":
        categories = []
        for col in cols:
            levels = list(step.levels) if step.levels is not None else _sorted_levels(frame[col])
            if not levels:
                raise RecipeError(f"ordinal step: column {col!r} has no observed levels")
            categories.append(levels)
        encoder = OrdinalEncoder(
            categories=categories,
            handle_unknown="use_encoded_value",
            unknown_value=np.nan,
        )
        return encoder.fit(_as_object(frame))

    if step.kind == "dummy":
        categories, references = [], []
        for col in cols:
            levels = _sorted_levels(frame[col])
            if not levels:
                raise RecipeError(f"dummy step: column {col!r} has no observed levels")
            reference = levels[0] if step.reference is None else step.reference
            if reference not in levels:
                raise RecipeError(f"dummy step: reference {reference!r} not a level of {col!r}")
            categories.append(levels)
            references.append(reference)
        encoder = OneHotEncoder(
            categories=categories,
            drop=references,
            handle_unknown="ignore",
            sparse_output=False,
        )
        return encoder.fit(_as_object(frame))

    return None


def _transform(step: RecipeStep, fitted: Optional[TransformerMixin], work: pd.DataFrame) -> pd.DataFrame:
    """Apply one fitted step to a copy-owned frame."""
    if step.kind == "drop":
        return work.drop(columns=list(step.columns), errors="ignore")

    cols = list(step.columns)
    frame = work[cols]

    if step.kind in ("impute_mean", "impute_median"):
        work[cols] = fitted.transform(frame.astype(float))
        return work

    if step.kind == "impute_mode":
        filled = pd.DataFrame(fitted.transform(_as_object(frame)), columns=cols, index=work.index)
        filled = filled.infer_objects()
        for col in cols:
            work[col] = filled[col]
        return work

    for col, levels in zip(cols, fitted.categories_):
        _warn_unseen(col, frame[col], levels, "missing" if step.kind == "ordinal" else "all-zero")

    if step.kind == "ordinal":
        work[cols] = fitted.transform(_as_object(frame))
        return work

    # unseen levels are already reported above
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", message="Found unknown categories", category=UserWarning)
        encoded = fitted.transform(_as_object(frame))
    start = 0
    for col, levels, reference in zip(cols, fitted.categories_, fitted.drop_idx_):
        names = [f"{col}_{lv}" for i, lv in enumerate(levels) if i != reference]
        block = pd.DataFrame(encoded[:, start:start + len(names)], columns=names, index=work.index)
        work = _replace_column(work, col, block)
        start += len(names)
    return work


@dataclass(frozen=True)
class FitRecipe:
    """A recipe with statistics learned from one training partition.

    ``learned`` holds one fitted scikit-learn transformer per step (``None``
    for a drop step). ``apply`` only calls ``transform`` on them, so applying
    it to a held-out set can never change the learned imputation values or
    level sets. ``input_columns`` leaves out columns that are only dropped.
    """

    steps: tuple
    learned: tuple
    input_columns: tuple
    feature_names: tuple
    outcome: Optional[str] = None
    objective: str = "regression"
    classes: Optional[tuple] = None
    positive_label: Any = None

    def apply(self, df: pd.DataFrame) -> tuple[pd.DataFrame, Optional[pd.Series]]:
        _require(df, self.input_columns, "apply")
        work = df.drop(columns=[self.outcome], errors="ignore") if self.outcome else df.copy()
        work = work.copy()
        for step, learned in zip(self.steps, self.learned):
            work = _transform(step, learned, work)
        X = work.loc[:, list(self.feature_names)].astype(float)

        y = None
        if self.outcome is not None and self.outcome in df.columns:
            y = self.encode_label(df[self.outcome])
        return X, y

    def encode_label(self, values: pd.Series) -> pd.Series:
        if values.isna().any():
            raise RecipeError(f"Outcome {self.outcome!r} has {int(values.isna().sum())} missing value(s)")
        if self.objective == "regression":
            return values.astype(float)
        unknown = set(values.unique()) - set(self.classes)
        if unknown:
            raise RecipeError(f"Outcome {self.outcome!r} has labels {sorted(map(str, unknown))} not seen in training")
        return (values == self.positive_label).astype(int)

    def decode_label(self, encoded: np.ndarray) -> np.ndarray:
        """Map 0/1 predictions back to the original class labels."""
        negative = next(c for c in self.classes if c != self.positive_label)
        return np.where(np.asarray(encoded) == 1, self.positive_label, negative)


@dataclass(frozen=True)
class FeatureRecipe:
    """Unfit recipe: the ordered steps, the outcome column and the objective."""

    steps: tuple = field(default_factory=tuple)
    outcome: Optional[str] = None
    objective: str = "regression"
    positive_label: Any = None

    def __post_init__(self):
        object.__setattr__(self, "steps", _as_steps(self.steps))
        self._check_order()
        if self.outcome is not None:
            for step in self.steps:
                if self.outcome in step.columns:
                    raise RecipeError(f"Outcome {self.outcome!r} cannot be used in a {step.kind} step")

    def _check_order(self) -> None:
        encoded: dict[str, int] = {}
        for i, step in enumerate(self.steps):
            for col in step.columns:
                if step.kind in ENCODERS:
                    encoded.setdefault(col, i)
                elif step.kind in IMPUTERS and col in encoded:
                    raise RecipeError(
                        f"Step {i} ({step.kind}) imputes {col!r} after it was encoded "
                        f"by step {encoded[col]}; impute before encoding"
                    )

    @property
    def used_columns(self) -> list:
        return [c for step in self.steps if step.kind != "drop" for c in step.columns]

    @property
    def dropped_columns(self) -> set:
        return {c for step in self.steps if step.kind == "drop" for c in step.columns}

    @property
    def referenced_columns(self) -> list:
        cols = [c for step in self.steps for c in step.columns]
        if self.outcome is not None:
            cols.append(self.outcome)
        return list(dict.fromkeys(cols))

    def _label_classes(self, labels: pd.Series) -> tuple[Optional[tuple], Any]:
        if self.objective == "regression":
            return None, None
        classes = tuple(_sorted_levels(labels))
        if len(classes) != 2:
            raise RecipeError(
                f"Binary outcome {self.outcome!r} needs exactly 2 classes in training, got {list(classes)}"
            )
        positive = classes[1] if self.positive_label is None else self.positive_label
        if positive not in classes:
            raise RecipeError(f"Positive label {positive!r} not among classes {list(classes)}")
        return classes, positive

    def fit(self, df: pd.DataFrame) -> FitRecipe:
        _require(df, self.referenced_columns, "fit")
        work = df.drop(columns=[self.outcome]) if self.outcome else df
        work = work.copy()
        only_dropped = self.dropped_columns - set(self.used_columns)
        input_columns = tuple(c for c in work.columns if c not in only_dropped)

        learned = []
        for step in self.steps:
            _require(work, step.columns, f"{step.kind} step")
            transformer = _learn(step, work)
            learned.append(transformer)
            work = _transform(step, transformer, work)

        for col in work.columns:
            dtype = work[col].dtype
            if not (pd.api.types.is_numeric_dtype(dtype) or pd.api.types.is_bool_dtype(dtype)):
                raise RecipeError(
                    f"Column {col!r} ({dtype}) is not numeric; add an ordinal or dummy step or drop it"
                )

        classes, positive = (None, None)
        if self.outcome is not None:
            classes, positive = self._label_classes(df[self.outcome])

        fitted = FitRecipe(
            steps=self.steps,
            learned=tuple(learned),
            input_columns=input_columns,
            feature_names=tuple(work.columns),
            outcome=self.outcome,
            objective=self.objective,
            classes=classes,
            positive_label=positive,
        )
        logger.debug(f"Fitted recipe on {len(df)} rows -> {len(fitted.feature_names)} features")
        return fitted
