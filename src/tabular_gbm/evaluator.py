import json
import os
from dataclasses import dataclass, field
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import confusion_matrix

from .explainer import Explanation, explain
from .metrics import check_metrics, compute_metrics
from .model_trainer import TrainedModel
from .threshold_analyzer import ThresholdAnalyzer, calibration_table, pr_curve_table, roc_curve_table
from .utils.logger import get_logger


@dataclass
class EvaluationReport:
    """Held-out metrics and the tables an external plotting step consumes."""

    objective: str
    metrics: Dict[str, float]
    predictions: pd.DataFrame
    calibration: pd.DataFrame
    confusion_matrix: Optional[pd.DataFrame] = None
    roc_curve: Optional[pd.DataFrame] = None
    pr_curve: Optional[pd.DataFrame] = None
    threshold_sweep: Optional[pd.DataFrame] = None
    explanation: Optional[Explanation] = None
    extras: Dict[str, float] = field(default_factory=dict)

    @property
    def attribution_summary(self) -> Optional[pd.DataFrame]:
        return None if self.explanation is None else self.explanation.summary()

    def tables(self) -> Dict[str, pd.DataFrame]:
        tables = {
            "predictions": self.predictions,
            "calibration": self.calibration,
            "confusion_matrix": self.confusion_matrix,
            "roc_curve": self.roc_curve,
            "pr_curve": self.pr_curve,
            "threshold_sweep": self.threshold_sweep,
        }
        if self.explanation is not None:
            tables["attributions"] = self.explanation.to_frame()
            tables["attribution_summary"] = self.attribution_summary
        return {name: t for name, t in tables.items() if t is not None}

    def save(self, directory: str) -> Dict[str, str]:
        """Write metrics.json plus one CSV per table; return the written paths."""
        os.makedirs(directory, exist_ok=True)
        paths = {"metrics": os.path.join(directory, "metrics.json")}
        with open(paths["metrics"], "w") as f:
            json.dump({**self.metrics, **self.extras}, f, indent=4)
        for name, table in self.tables().items():
            path = os.path.join(directory, f"{name}.csv")
            table.to_csv(path, index=name in ("confusion_matrix", "attributions", "predictions"))
            paths[name] = path
        return paths


class Evaluator:
    """Evaluate a trained model on the held-out partition."""

    def __init__(self, threshold: float = 0.5, n_buckets: int = 4, verbose: bool = True):
        if not 0 < threshold < 1:
            raise ValueError(f"threshold must be in (0, 1), got {threshold}")
        self.threshold = threshold
        self.n_buckets = n_buckets
        self.verbose = verbose
        self.logger = get_logger(self.__class__.__name__)

    def _confusion(self, y_true: np.ndarray, y_pred: np.ndarray, classes) -> pd.DataFrame:
        cm = confusion_matrix(y_true, y_pred, labels=[0, 1])
        names = [str(c) for c in classes] if classes else ["0", "1"]
        return pd.DataFrame(
            cm,
            index=pd.Index([f"observed_{n}" for n in names], name="observed"),
            columns=[f"predicted_{n}" for n in names],
        )

    def evaluate(
        self,
        model: TrainedModel,
        held_out: pd.DataFrame,
        metric_names: Optional[Sequence[str]] = None,
        explain_rows: bool = True,
    ) -> EvaluationReport:
        metric_names = check_metrics(metric_names, model.objective)
        _, y_true = model.recipe.apply(held_out)
        if y_true is None:
            raise ValueError(f"Held-out data has no outcome column {model.recipe.outcome!r}")
        y_true = y_true.to_numpy()

        explanation = explain(model, held_out) if explain_rows else None

        if model.objective == "binary":
            report = self._evaluate_binary(model, held_out, y_true, metric_names)
        else:
            y_pred = model.predict(held_out)
            report = EvaluationReport(
                objective=model.objective,
                metrics=compute_metrics(metric_names, y_true, y_pred),
                predictions=pd.DataFrame(
                    {"observed": y_true, "predicted": y_pred}, index=held_out.index
                ),
                calibration=calibration_table(y_true, y_pred, self.n_buckets),
            )
        report.explanation = explanation

        if self.verbose:
            shown = ", ".join(f"{k}={v:.4f}" for k, v in report.metrics.items())
            self.logger.info(f"Held-out metrics ({len(held_out)} rows): {shown}")
        return report

    def _evaluate_binary(self, model, held_out, y_true, metric_names) -> EvaluationReport:
        y_proba = model.predict_proba(held_out)
        y_pred = (y_proba >= self.threshold).astype(int)
        recipe = model.recipe
        # class order as (negative, positive)
        classes = None
        if recipe.classes is not None:
            negative = next(c for c in recipe.classes if c != recipe.positive_label)
            classes = (negative, recipe.positive_label)

        sweep, best_threshold = ThresholdAnalyzer(verbose=self.verbose).run(y_true, y_proba)
        return EvaluationReport(
            objective=model.objective,
            metrics=compute_metrics(metric_names, y_true, y_proba),
            predictions=pd.DataFrame(
                {"observed": y_true, "probability": y_proba, "predicted": y_pred},
                index=held_out.index,
            ),
            calibration=calibration_table(y_true, y_proba, self.n_buckets),
            confusion_matrix=self._confusion(y_true, y_pred, classes),
            roc_curve=roc_curve_table(y_true, y_proba),
            pr_curve=pr_curve_table(y_true, y_proba),
            threshold_sweep=sweep,
            extras={"threshold": self.threshold, "best_f1_threshold": best_threshold},
        )
