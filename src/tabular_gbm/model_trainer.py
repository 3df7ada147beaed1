from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Any

import joblib
import numpy as np
import pandas as pd

from .model_spec import ModelSpec
from .recipe import FeatureRecipe, FitRecipe
from .utils.logger import get_logger


@dataclass
class TrainedModel:
    """A fitted LightGBM estimator bundled with the recipe and options it was trained with.

    Inputs are raw dataset rows: the fit recipe turns them into the feature
    matrix before every prediction.
    """

    estimator: Any
    recipe: FitRecipe
    hyperparameters: dict[str, Any]
    objective: str
    threshold: float = 0.5

    @property
    def feature_names(self) -> list[str]:
        return list(self.recipe.feature_names)

    def features(self, df: pd.DataFrame) -> pd.DataFrame:
        X, _ = self.recipe.apply(df)
        return X

    def raw_score(self, df: pd.DataFrame) -> np.ndarray:
        """Model output before the link function (log-odds for classification)."""
        X = self.features(df).to_numpy()
        return self.estimator.predict(X, raw_score=True)

    def predict_proba(self, df: pd.DataFrame) -> np.ndarray:
        if self.objective != "binary":
            raise RuntimeError("predict_proba is only available for binary models")
        X = self.features(df).to_numpy()
        return self.estimator.predict_proba(X)[:, 1]

    def predict(self, df: pd.DataFrame) -> np.ndarray:
        """Point predictions: numbers for regression, 0/1 at ``threshold`` for classification."""
        if self.objective == "binary":
            return (self.predict_proba(df) >= self.threshold).astype(int)
        X = self.features(df).to_numpy()
        return self.estimator.predict(X)

    def predict_labels(self, df: pd.DataFrame) -> np.ndarray:
        """Classification predictions in the original label vocabulary."""
        return self.recipe.decode_label(self.predict(df))

    def save(self, path: str) -> None:
        os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
        joblib.dump(self, path)

    @staticmethod
    def load(path: str) -> "TrainedModel":
        model = joblib.load(path)
        if not isinstance(model, TrainedModel):
            raise TypeError(f"{path} does not contain a TrainedModel")
        return model


class ModelTrainer:
    """
    Trains one LightGBM model with leakage-safe preprocessing:
    the recipe is fit only on the rows the model is trained on.
    """

    def __init__(self, model_spec: ModelSpec, recipe: FeatureRecipe, random_state: int = 42):
        self.model_spec = model_spec
        self.recipe = recipe
        self.random_state = random_state
        self.logger = get_logger(self.__class__.__name__)

    def fit(self, train_df: pd.DataFrame, hyperparameters: dict[str, Any]) -> TrainedModel:
        fit_recipe = self.recipe.fit(train_df)
        X_train, y_train = fit_recipe.apply(train_df)
        if y_train is None:
            raise ValueError("Training data has no outcome column")

        model = self.model_spec.build_estimator(hyperparameters, seed=self.random_state)
        model.fit(X_train.to_numpy(), y_train.to_numpy())

        return TrainedModel(
            estimator=model,
            recipe=fit_recipe,
            hyperparameters=self.model_spec.resolve(hyperparameters),
            objective=self.model_spec.objective,
        )

    def predict_scores(self, trained: TrainedModel, df: pd.DataFrame) -> np.ndarray:
        """Scores the metric registry expects: predictions or positive-class probabilities."""
        if trained.objective == "binary":
            return trained.predict_proba(df)
        return trained.predict(df)
