"""
Boosted-tree tabular modelling workflow

This package provides an end-to-end implementation of
load -> split -> recipe -> cross-validated grid search ->
refit on the best grid point -> held-out evaluation -> explanation
for LightGBM regression and binary classification models.

Modules:
    config              - Load and validate YAML configuration.
    data_loader         - Read delimited files, normalize missing tokens.
    splitter            - Seeded train/held-out split and (stratified) K-fold.
    recipe              - Declarative fit/apply feature recipes.
    model_spec          - Model options, fixed and tunable, mapped to LightGBM.
    grid                - Latin hypercube, random and regular grids.
    model_trainer       - Train one model; the TrainedModel artifact.
    hyper_tuner         - Parallel cross-validated grid search.
    selector            - Pick the best grid point and refit.
    metrics             - Named metrics with optimization direction.
    evaluator           - Held-out metrics, curves, calibration table.
    threshold_analyzer  - ROC/PR/calibration tables and threshold sweep.
    explainer           - TreeSHAP attributions on the raw model score.
    pipeline            - Orchestrates all components.
    api                 - FastAPI prediction service for a saved model.
    utils.logger        - Unified timestamped console logger.
"""

from .config import Config
from .data_loader import DataLoader
from .evaluator import EvaluationReport, Evaluator
from .exceptions import (
    ConvergenceOrEmptyGridError,
    FormatError,
    InvalidKError,
    InvalidProportionError,
    MissingColumnError,
    RecipeError,
    TabularGBMError,
    TrainingFailure,
    UnseenCategoryWarning,
)
from .explainer import Explanation, explain
from .grid import latin_hypercube_grid, make_grid
from .hyper_tuner import GridSearch, SearchResult
from .model_spec import HyperparameterRange, ModelSpec
from .model_trainer import ModelTrainer, TrainedModel
from .pipeline import PipelineResult, PipelineRunner
from .recipe import FeatureRecipe, FitRecipe, RecipeStep
from .selector import finalize, select_best, show_best
from .splitter import Split, kfold, split
from .threshold_analyzer import ThresholdAnalyzer

__all__ = [
    "Config",
    "DataLoader",
    "Split",
    "split",
    "kfold",
    "FeatureRecipe",
    "FitRecipe",
    "RecipeStep",
    "ModelSpec",
    "HyperparameterRange",
    "latin_hypercube_grid",
    "make_grid",
    "ModelTrainer",
    "TrainedModel",
    "GridSearch",
    "SearchResult",
    "select_best",
    "show_best",
    "finalize",
    "Evaluator",
    "EvaluationReport",
    "ThresholdAnalyzer",
    "Explanation",
    "explain",
    "PipelineRunner",
    "PipelineResult",
    "TabularGBMError",
    "FormatError",
    "MissingColumnError",
    "InvalidProportionError",
    "InvalidKError",
    "RecipeError",
    "ConvergenceOrEmptyGridError",
    "TrainingFailure",
    "UnseenCategoryWarning",
]
