import json
import os
import warnings
from dataclasses import dataclass
from typing import Any, Dict, List, Union

import pandas as pd

from .config import Config
from .data_loader import DEFAULT_MISSING_TOKENS, DataLoader
from .evaluator import EvaluationReport, Evaluator
from .grid import as_grid, make_grid
from .hyper_tuner import GridSearch, SearchResult
from .model_spec import ModelSpec
from .model_trainer import TrainedModel
from .recipe import FeatureRecipe
from .selector import finalize, select_best
from .splitter import Split, kfold, split
from .utils.logger import get_logger


@dataclass
class PipelineResult:
    split: Split
    folds: List[Split]
    grid: pd.DataFrame
    search: SearchResult
    best_params: Dict[str, Any]
    model: TrainedModel
    report: EvaluationReport
    artifacts: Dict[str, str]


class PipelineRunner:
    """End-to-end boosted-tree workflow driven by one YAML config.

    Steps:
      1. Load the delimited dataset and normalize missing tokens
      2. Split into training and held-out partitions
      3. Cut the training partition into (optionally stratified) folds
      4. Build the hyperparameter grid (explicit or space-filling)
      5. Cross-validate every grid point; the recipe is fit per fold
      6. Select the best grid point and refit on the full training partition
      7. Evaluate on the held-out partition and explain the predictions
      8. Write the search table, model and evaluation tables to the output dir"""

    def __init__(self, config: Union[str, Config]):
        self.config = Config.from_yaml(config) if isinstance(config, str) else config
        self.config.validate()
        self.logger = get_logger(self.__class__.__name__)
        warnings.filterwarnings(
            "ignore",
            message="X does not have valid feature names",
            category=UserWarning,
            module="sklearn",
        )
        warnings.filterwarnings("ignore", category=UserWarning, module="lightgbm")

    def load(self) -> pd.DataFrame:
        data = self.config.data
        return DataLoader(
            path=data["path"],
            column_names=data["column_names"],
            missing_tokens=data.get("missing_tokens", DEFAULT_MISSING_TOKENS),
            sep=data.get("sep", ","),
            header=data.get("header", False),
            sample_size=data.get("sample_size"),
            random_state=self.config.seed,
        ).load()

    def build_recipe(self) -> FeatureRecipe:
        cfg = self.config
        return FeatureRecipe(
            steps=cfg.recipe_steps,
            outcome=cfg.data["outcome"],
            objective=cfg.objective,
            positive_label=cfg.data.get("positive_label"),
        )

    def build_grid(self, model_spec: ModelSpec) -> pd.DataFrame:
        search = self.config.validation.get("search", {})
        if search.get("grid") is not None:
            return as_grid(search["grid"])
        return make_grid(
            model_spec.tunable,
            grid_type=search.get("grid_type", "latin_hypercube"),
            size=int(search.get("size", 10)),
            seed=self.config.seed,
            levels=int(search.get("levels", 3)),
        )

    def _save_search(self, out_dir: str, search: SearchResult, best_params: Dict[str, Any]) -> Dict[str, str]:
        paths = {
            "search_table": os.path.join(out_dir, "search_table.csv"),
            "search_summary": os.path.join(out_dir, "search_summary.csv"),
            "best_params": os.path.join(out_dir, "best_params.json"),
        }
        search.table.to_csv(paths["search_table"], index=False)
        search.aggregate().to_csv(paths["search_summary"], index=False)
        with open(paths["best_params"], "w") as f:
            json.dump({"seed": search.seed, "params": best_params}, f, indent=4)
        return paths

    def run(self) -> PipelineResult:
        cfg = self.config
        val = cfg.validation
        seed = cfg.seed
        self.logger.info(f"Starting {cfg.objective} pipeline (seed={seed})")

        df = self.load()

        top = split(df, float(val.get("proportion", 0.75)), seed=seed, stratify_by=cfg.stratify_by)
        train_df = top.training(df)
        held_out = top.testing(df)
        self.logger.info(f"Split: {len(train_df):,} training rows, {len(held_out):,} held-out rows")

        folds = kfold(train_df, int(val.get("n_folds", 5)), seed=seed, stratify_by=cfg.stratify_by)

        model_spec = ModelSpec.from_config(cfg.model)
        recipe = self.build_recipe()
        grid = self.build_grid(model_spec)

        search_cfg = val.get("search", {})
        searcher = GridSearch(
            model_spec,
            recipe,
            metric_names=search_cfg.get("metrics"),
            n_jobs=int(search_cfg.get("n_jobs", 1)),
            seed=seed,
        )
        search = searcher.search(train_df, grid, folds)

        select_metric = search_cfg.get("select_metric", searcher.metric_names[0])
        best_params = select_best(search, select_metric, search_cfg.get("direction"))
        model = finalize(model_spec, best_params, recipe, train_df, seed=seed)

        ev_cfg = cfg.evaluation
        evaluator = Evaluator(
            threshold=float(ev_cfg.get("threshold", 0.5)),
            n_buckets=int(ev_cfg.get("n_buckets", 4)),
        )
        report = evaluator.evaluate(
            model,
            held_out,
            metric_names=ev_cfg.get("metrics"),
            explain_rows=ev_cfg.get("explain", True),
        )

        out_dir = cfg.output.get("dir", "artifacts")
        os.makedirs(out_dir, exist_ok=True)
        artifacts = self._save_search(out_dir, search, best_params)
        artifacts["model"] = os.path.join(out_dir, cfg.output.get("model_file", "model.joblib"))
        model.save(artifacts["model"])
        artifacts.update(report.save(out_dir))
        self.logger.info(f"Saved {len(artifacts)} artifacts to {out_dir}")
        self.logger.info("Pipeline finished")

        return PipelineResult(
            split=top,
            folds=folds,
            grid=grid,
            search=search,
            best_params=best_params,
            model=model,
            report=report,
            artifacts=artifacts,
        )
