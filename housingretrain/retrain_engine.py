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
Retrain Engine: warm-started refit of the original regression model.

The new fit starts from the original coefficients and intercept rather
than from zeros, so the resulting weights measure how far the new records
pull the model, not noise from a fresh initialization.
"""

import logging
import threading
import warnings
from typing import Iterable, Optional, Sequence, Tuple

import numpy as np
from sklearn.base import clone
from sklearn.exceptions import ConvergenceWarning

from .common.artifact_constants import LABEL_COLUMN
from .common.errors import RetrainFailed, SchemaMismatch
from .model_loader import ModelSchema, RegressionModel
from .record_parser import HousingRecord, records_to_frame

# Warning filters are process-global; fits that escalate ConvergenceWarning run one at a time
_fit_lock = threading.Lock()


def pipeline_feature_names(pipeline) -> Optional[Tuple[str, ...]]:
    """Output feature names of a fitted transformer, if it can report them."""
    try:
        names = pipeline.get_feature_names_out()
    except (AttributeError, TypeError, ValueError):
        return None
    return tuple(str(n) for n in names)


class RetrainEngine:
    """Fits a new model of the original's family on freshly arrived records."""

    def __init__(self, max_iter: Optional[int] = None):
        self.max_iter = max_iter

    def transform_records(self, records: Sequence[HousingRecord], pipeline, schema: ModelSchema):
        """
        Apply the feature pipeline to records.

        Returns (X, y) where X is aligned to the schema the model expects.
        """
        frame = records_to_frame(records)
        y = frame.pop(LABEL_COLUMN).to_numpy(dtype=np.float64)

        try:
            X = pipeline.transform(frame)
        except Exception as e:
            raise SchemaMismatch(f"Feature pipeline rejected the records: {e}") from e

        n_out = X.shape[1] if len(X.shape) == 2 else 1
        if n_out != schema.n_features:
            raise SchemaMismatch(
                f"Feature pipeline produces {n_out} features, model expects {schema.n_features}",
                expected=schema.n_features,
                actual=n_out,
            )

        names = pipeline_feature_names(pipeline)
        if schema.feature_names is not None and names is not None and names != schema.feature_names:
            raise SchemaMismatch(
                "Feature pipeline output names do not match the model schema",
                expected=list(schema.feature_names),
                actual=list(names),
            )
        return X, y

    def retrain(self, records: Iterable[HousingRecord], pipeline, original_model: RegressionModel) -> RegressionModel:
        records = list(records)
        if not records:
            raise RetrainFailed("No records to retrain on")

        X, y = self.transform_records(records, pipeline, original_model.schema)

        estimator = clone(original_model.estimator)
        params = {"warm_start": True}
        if self.max_iter is not None:
            params["max_iter"] = self.max_iter
        estimator.set_params(**params)

        # Warm start point: fit() picks these up when warm_start is set
        estimator.coef_ = original_model.weights.copy()
        estimator.intercept_ = original_model.bias

        logging.info(
            f"Retraining {original_model.model_type} on {len(records)} records "
            f"(warm start, max_iter={estimator.max_iter})"
        )
        try:
            with _fit_lock, warnings.catch_warnings():
                warnings.simplefilter("error", ConvergenceWarning)
                estimator.fit(X, y)
        except ConvergenceWarning as w:
            raise RetrainFailed(
                f"Optimizer did not converge within max_iter={estimator.max_iter}: {w}"
            ) from w
        except ValueError as e:
            raise RetrainFailed(f"Fit rejected the new data: {e}") from e

        n_iter = getattr(estimator, "n_iter_", None)
        if n_iter is not None and n_iter >= estimator.max_iter:
            raise RetrainFailed(f"Optimizer did not converge within max_iter={estimator.max_iter}")

        weights = np.asarray(estimator.coef_, dtype=np.float64).ravel().copy()
        bias = float(estimator.intercept_)
        if not np.all(np.isfinite(weights)) or not np.isfinite(bias):
            raise RetrainFailed("Fit produced non-finite coefficients")

        logging.info(f"Retrain finished after {n_iter} iterations")
        return RegressionModel(
            weights=weights,
            bias=bias,
            family=original_model.family,
            schema=original_model.schema,
            estimator=estimator,
            training_samples=len(records),
        )
