import os
from contextlib import asynccontextmanager
from typing import Any, Dict, List, Optional

import pandas as pd
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from .exceptions import MissingColumnError, RecipeError
from .model_trainer import TrainedModel

MODEL_PATH_ENV = "TABULAR_GBM_MODEL_PATH"
DEFAULT_MODEL_PATH = "artifacts/model.joblib"

model: Optional[TrainedModel] = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    global model
    model = TrainedModel.load(os.environ.get(MODEL_PATH_ENV, DEFAULT_MODEL_PATH))
    yield
    model = None


app = FastAPI(
    title="Boosted tree prediction API",
    lifespan=lifespan,
)


class PredictRequest(BaseModel):
    records: List[Dict[str, Any]] = Field(..., min_length=1)


class PredictResponse(BaseModel):
    predictions: List[Any]
    probabilities: Optional[List[float]] = None


@app.get("/health")
def health():
    return {
        "status": "ok",
        "model_loaded": model is not None,
        "objective": None if model is None else model.objective,
        "n_features": 0 if model is None else len(model.feature_names),
        "hyperparameters": None if model is None else model.hyperparameters,
    }


@app.post("/predict", response_model=PredictResponse)
def predict(req: PredictRequest):
    if model is None:
        raise HTTPException(status_code=500, detail="Model not loaded")

    # missing values arrive as null; the recipe imputes them like at training time
    df = pd.DataFrame.from_records(req.records)
    try:
        if model.objective == "binary":
            proba = model.predict_proba(df)
            labels = model.predict_labels(df)
            return PredictResponse(
                predictions=[v.item() if hasattr(v, "item") else v for v in labels],
                probabilities=[float(p) for p in proba],
            )
        preds = model.predict(df)
    except (MissingColumnError, RecipeError) as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    return PredictResponse(predictions=[float(p) for p in preds])
