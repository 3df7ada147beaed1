from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional
import yaml

from .exceptions import InvalidKError, InvalidProportionError
from .metrics import DIRECTIONS, check_metrics

OBJECTIVES = ("regression", "binary")


@dataclass
class Config:
    """Configuration object loaded from YAML."""
    data: Dict[str, Any]
    preprocessing: Dict[str, Any]
    model: Dict[str, Any]
    validation: Dict[str, Any]
    output: Dict[str, Any]
    evaluation: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, path: str) -> "Config":
        with open(path, "r") as f:
            cfg = yaml.safe_load(f)
        config = cls(**cfg)
        config.validate()
        return config

    @property
    def seed(self) -> int:
        return int(self.validation.get("seed", 42))

    @property
    def objective(self) -> str:
        return self.model.get("objective", "regression")

    @property
    def recipe_steps(self) -> List[Dict[str, Any]]:
        return list(self.preprocessing.get("steps") or [])

    @property
    def stratify_by(self) -> Optional[str]:
        return self.validation.get("stratify_by")

    def validate(self) -> None:
        """Reject bad settings before any data is read or any model is trained."""
        for key in ("path", "column_names", "outcome"):
            if key not in self.data:
                raise ValueError(f"data.{key} is required")
        if self.data["outcome"] not in self.data["column_names"]:
            raise ValueError(f"Outcome {self.data['outcome']!r} is not among data.column_names")

        proportion = self.validation.get("proportion", 0.75)
        if not 0 < float(proportion) < 1:
            raise InvalidProportionError(f"Split proportion must be in (0, 1), got {proportion}")

        n_folds = self.validation.get("n_folds", 5)
        if int(n_folds) < 2:
            raise InvalidKError(f"Fold count must be at least 2, got {n_folds}")

        if self.objective not in OBJECTIVES:
            raise ValueError(f"Unknown objective {self.objective!r}; expected one of {OBJECTIVES}")

        stratify = self.stratify_by
        if stratify is not None and stratify not in self.data["column_names"]:
            raise ValueError(f"Stratification column {stratify!r} is not among data.column_names")

        search = self.validation.get("search", {})
        if search.get("grid") is None and not self.model.get("tune"):
            raise ValueError("Either model.tune ranges or validation.search.grid must be given")

        metrics = check_metrics(search.get("metrics"), self.objective)
        select_metric = search.get("select_metric", metrics[0])
        if select_metric not in metrics:
            raise ValueError(
                f"validation.search.select_metric {select_metric!r} is not among the search metrics {metrics}"
            )
        direction = search.get("direction")
        if direction is not None and direction not in DIRECTIONS:
            raise ValueError(f"validation.search.direction must be one of {DIRECTIONS}, got {direction!r}")
        check_metrics(self.evaluation.get("metrics"), self.objective)
