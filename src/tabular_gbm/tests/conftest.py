import numpy as np
import pandas as pd
import pytest

from tabular_gbm.recipe import FeatureRecipe

REGRESSION_COLUMNS = ["mcv", "alkphos", "sgpt", "sgot", "gammagt", "drinks"]

CLASSIFICATION_COLUMNS = [
    "class", "age", "menopause", "tumor_size", "inv_nodes",
    "node_caps", "deg_malig", "breast", "breast_quad", "irradiat",
]
AGE_LEVELS = ["20-29", "30-39", "40-49", "50-59", "60-69", "70-79"]


def make_regression_frame(n: int = 345, seed: int = 0) -> pd.DataFrame:
    """Six numeric columns shaped like the liver-disorders blood tests."""
    rng = np.random.default_rng(seed)
    df = pd.DataFrame(
        {
            "mcv": rng.normal(90, 4.5, n).round(),
            "alkphos": rng.normal(70, 18, n).round(),
            "sgpt": rng.gamma(3, 10, n).round(),
            "sgot": rng.gamma(5, 5, n).round(),
            "gammagt": rng.gamma(2, 20, n).round(),
        }
    )
    signal = 0.05 * df["gammagt"] + 0.1 * (df["mcv"] - 90) + 0.03 * df["sgpt"]
    df["drinks"] = (signal + rng.normal(0, 1, n)).clip(lower=0).round(1)
    return df


def make_classification_frame(n: int = 286, n_positive: int = 85, seed: int = 0) -> pd.DataFrame:
    """Ten categorical columns shaped like the breast-cancer recurrence data."""
    rng = np.random.default_rng(seed)
    labels = np.array(["recurrence-events"] * n_positive + ["no-recurrence-events"] * (n - n_positive))
    rng.shuffle(labels)
    positive = labels == "recurrence-events"

    deg_malig = np.where(positive, rng.choice([1, 2, 3], n, p=[0.1, 0.4, 0.5]),
                         rng.choice([1, 2, 3], n, p=[0.35, 0.45, 0.2]))
    node_caps = np.where(positive, rng.choice(["yes", "no"], n, p=[0.45, 0.55]),
                         rng.choice(["yes", "no"], n, p=[0.1, 0.9])).astype(object)
    node_caps[rng.choice(n, 8, replace=False)] = np.nan

    return pd.DataFrame(
        {
            "class": labels,
            "age": rng.choice(AGE_LEVELS, n),
            "menopause": rng.choice(["premeno", "ge40", "lt40"], n, p=[0.5, 0.45, 0.05]),
            "tumor_size": rng.choice(["0-4", "10-14", "20-24", "30-34", "40-44"], n),
            "inv_nodes": np.where(positive, rng.choice(["0-2", "3-5", "6-8"], n, p=[0.5, 0.3, 0.2]),
                                  rng.choice(["0-2", "3-5", "6-8"], n, p=[0.85, 0.1, 0.05])),
            "node_caps": node_caps,
            "deg_malig": deg_malig,
            "breast": rng.choice(["left", "right"], n),
            "breast_quad": rng.choice(["left_low", "left_up", "right_up", "right_low", "central"], n),
            "irradiat": np.where(positive, rng.choice(["yes", "no"], n, p=[0.4, 0.6]),
                                 rng.choice(["yes", "no"], n, p=[0.15, 0.85])),
        }
    )


CLASSIFICATION_STEPS = [
    {"step": "impute_mode", "columns": ["node_caps"]},
    {"step": "ordinal", "columns": ["age"], "levels": AGE_LEVELS},
    {"step": "ordinal", "columns": ["tumor_size"], "levels": ["0-4", "10-14", "20-24", "30-34", "40-44"]},
    {"step": "ordinal", "columns": ["inv_nodes"], "levels": ["0-2", "3-5", "6-8"]},
    {"step": "dummy", "columns": ["menopause", "node_caps", "breast", "breast_quad", "irradiat"]},
]


@pytest.fixture
def regression_df() -> pd.DataFrame:
    return make_regression_frame()


@pytest.fixture
def classification_df() -> pd.DataFrame:
    return make_classification_frame()


@pytest.fixture
def regression_recipe() -> FeatureRecipe:
    return FeatureRecipe(
        steps=[{"step": "impute_mean", "columns": ["mcv", "alkphos", "sgpt", "sgot", "gammagt"]}],
        outcome="drinks",
        objective="regression",
    )


@pytest.fixture
def classification_recipe() -> FeatureRecipe:
    return FeatureRecipe(
        steps=CLASSIFICATION_STEPS,
        outcome="class",
        objective="binary",
        positive_label="recurrence-events",
    )
