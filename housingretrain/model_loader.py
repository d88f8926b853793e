# Copyright 2025 The Kubernetes Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Model Loader: deserializes the feature pipeline and the regression model.

Both artifacts are joblib-serialized scikit-learn objects. The regression
artifact may be wrapped (a Pipeline holding only the regressor); the loader
unwraps it down to the concrete estimator and exposes its linear view
(coefficients + bias + schema). Only the generalized linear family is
supported, everything else is tagged UNSUPPORTED and rejected.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional, Tuple

import joblib
import numpy as np
from sklearn.linear_model import GammaRegressor, PoissonRegressor, TweedieRegressor
from sklearn.exceptions import NotFittedError
from sklearn.pipeline import Pipeline
from sklearn.utils.validation import check_is_fitted

from .common.errors import ArtifactCorrupt, UnsupportedModelType

# Regressors sharing the lbfgs/newton warm-start code path
GLM_REGRESSORS = (PoissonRegressor, GammaRegressor, TweedieRegressor)


class ModelFamily(str, Enum):
    LINEAR = "linear"
    UNSUPPORTED = "unsupported"


@dataclass(frozen=True)
class ModelSchema:
    n_features: int
    feature_names: Optional[Tuple[str, ...]] = None


@dataclass(frozen=True, eq=False)
class RegressionModel:
    weights: np.ndarray
    bias: float
    family: ModelFamily
    schema: ModelSchema
    estimator: Any
    training_samples: Optional[int] = None

    @property
    def model_type(self) -> str:
        return type(self.estimator).__name__


def classify_model(estimator) -> ModelFamily:
    if isinstance(estimator, GLM_REGRESSORS):
        return ModelFamily.LINEAR
    return ModelFamily.UNSUPPORTED


def _unwrap_estimator(model):
    """Strip a Pipeline that only wraps the final regressor."""
    while isinstance(model, Pipeline):
        leading = [step for _, step in model.steps[:-1] if step is not None and step != "passthrough"]
        if leading:
            raise UnsupportedModelType(
                "Pipeline", "model artifact bundles its own preprocessing steps"
            )
        model = model.steps[-1][1]
    return model


def _schema_of(estimator) -> ModelSchema:
    n_features = getattr(estimator, "n_features_in_", None)
    if n_features is None:
        n_features = np.asarray(estimator.coef_).shape[-1]
    names = getattr(estimator, "feature_names_in_", None)
    return ModelSchema(
        n_features=int(n_features),
        feature_names=tuple(str(n) for n in names) if names is not None else None,
    )


def extract_linear_parameters(model) -> RegressionModel:
    """
    Unwrap a loaded model to its linear parameters.

    Raises UnsupportedModelType for anything outside the GLM family and
    ArtifactCorrupt if the estimator was never fitted.
    """
    estimator = _unwrap_estimator(model)
    family = classify_model(estimator)
    if family is ModelFamily.UNSUPPORTED:
        raise UnsupportedModelType(type(estimator).__name__)

    if not hasattr(estimator, "coef_") or not hasattr(estimator, "intercept_"):
        raise ArtifactCorrupt(type(estimator).__name__, "estimator is not fitted, schema cannot be recovered")

    weights = np.asarray(estimator.coef_, dtype=np.float64).ravel().copy()
    return RegressionModel(
        weights=weights,
        bias=float(estimator.intercept_),
        family=family,
        schema=_schema_of(estimator),
        estimator=estimator,
    )


def _load(path) -> Any:
    try:
        return joblib.load(path)
    except Exception as e:
        logging.error(f"Load error for {path}: {e}")
        raise ArtifactCorrupt(str(path), f"{type(e).__name__}: {e}") from e


def load_pipeline(path):
    """Load the fitted feature-preparation pipeline."""
    pipeline = _load(path)
    if not callable(getattr(pipeline, "transform", None)):
        raise ArtifactCorrupt(str(path), f"{type(pipeline).__name__} has no transform()")
    try:
        check_is_fitted(pipeline)
    except (NotFittedError, TypeError) as e:
        raise ArtifactCorrupt(str(path), f"feature pipeline is not fitted: {e}") from e
    logging.info(f"Feature pipeline loaded from {path}: {type(pipeline).__name__}")
    return pipeline


def load_regression_model(path) -> Tuple[RegressionModel, ModelSchema]:
    """Load the trained regressor and return its linear view and schema."""
    model = _load(path)
    try:
        original = extract_linear_parameters(model)
    except ArtifactCorrupt as e:
        raise ArtifactCorrupt(str(path), e.reason) from e
    logging.info(
        f"Regression model loaded from {path}: {original.model_type}, "
        f"{original.schema.n_features} features"
    )
    return original, original.schema
