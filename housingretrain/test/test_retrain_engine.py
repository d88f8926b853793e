import time
import warnings
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pandas as pd
import pytest
from sklearn.compose import ColumnTransformer
from sklearn.exceptions import ConvergenceWarning
from sklearn.linear_model import PoissonRegressor
from sklearn.preprocessing import StandardScaler

from housingretrain.common.errors import RetrainFailed, SchemaMismatch
from housingretrain.model_loader import extract_linear_parameters
from housingretrain.record_parser import parse_records
from housingretrain.retrain_engine import RetrainEngine, pipeline_feature_names


class NeverConvergingPoisson(PoissonRegressor):
    def fit(self, X, y, sample_weight=None):
        warnings.warn("lbfgs failed to converge", ConvergenceWarning)
        return super().fit(X, y, sample_weight=sample_weight)


class SilentPoisson(PoissonRegressor):
    def fit(self, X, y, sample_weight=None):
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            return super().fit(X, y, sample_weight=sample_weight)


@pytest.fixture
def original(fitted_model):
    return extract_linear_parameters(fitted_model)


def test_retrain_on_identical_data_has_near_zero_drift(training_records, fitted_pipeline, original):
    retrained = RetrainEngine().retrain(training_records, fitted_pipeline, original)
    assert retrained.weights.shape == original.weights.shape
    np.testing.assert_allclose(retrained.weights, original.weights, atol=1e-3)
    assert retrained.bias == pytest.approx(original.bias, abs=1e-3)
    assert retrained.training_samples == len(training_records)


def test_retrain_on_new_data_moves_weights(generate_records, fitted_pipeline, original):
    new_records = generate_records(n=120, seed=3, value_scale=3.0)
    retrained = RetrainEngine().retrain(new_records, fitted_pipeline, original)
    # tripling the target shifts the log-link intercept by about log(3)
    assert retrained.bias - original.bias == pytest.approx(np.log(3.0), abs=0.3)
    assert retrained.schema is original.schema
    assert retrained.family is original.family


def test_retrain_does_not_touch_original(generate_records, fitted_pipeline, fitted_model, original):
    before = original.weights.copy()
    RetrainEngine().retrain(generate_records(n=50, seed=9, value_scale=2.0), fitted_pipeline, original)
    np.testing.assert_array_equal(original.weights, before)
    np.testing.assert_array_equal(fitted_model.coef_, before)


def test_retrain_consumes_lazy_records(to_csv, training_records, fitted_pipeline, original):
    records = parse_records(to_csv(training_records[:60]))
    retrained = RetrainEngine().retrain(records, fitted_pipeline, original)
    assert retrained.training_samples == 60


def test_warm_start_uses_original_weights(monkeypatch, training_records, fitted_pipeline, original):
    seen = {}
    real_fit = PoissonRegressor.fit

    def spy_fit(self, X, y, sample_weight=None):
        seen["warm_start"] = self.warm_start
        seen["coef"] = self.coef_.copy()
        seen["intercept"] = self.intercept_
        return real_fit(self, X, y, sample_weight=sample_weight)

    monkeypatch.setattr(PoissonRegressor, "fit", spy_fit)
    RetrainEngine().retrain(training_records, fitted_pipeline, original)
    assert seen["warm_start"] is True
    np.testing.assert_array_equal(seen["coef"], original.weights)
    assert seen["intercept"] == original.bias


def test_max_iter_override(training_records, fitted_pipeline, original):
    retrained = RetrainEngine(max_iter=500).retrain(training_records, fitted_pipeline, original)
    assert retrained.estimator.max_iter == 500


def test_no_records_fails(fitted_pipeline, original):
    with pytest.raises(RetrainFailed):
        RetrainEngine().retrain([], fitted_pipeline, original)


def test_non_convergence_fails(training_records, fitted_pipeline, fitted_model):
    model = NeverConvergingPoisson(alpha=0.01, max_iter=1000)
    model.coef_ = fitted_model.coef_.copy()
    model.intercept_ = fitted_model.intercept_
    model.n_features_in_ = fitted_model.n_features_in_
    original = extract_linear_parameters(model)

    with pytest.raises(RetrainFailed) as exc_info:
        RetrainEngine().retrain(training_records, fitted_pipeline, original)
    assert "converge" in str(exc_info.value)


def test_non_convergence_detected_without_warning(generate_records, fitted_pipeline, fitted_model):
    model = SilentPoisson(alpha=0.01, max_iter=1000)
    model.coef_ = fitted_model.coef_.copy()
    model.intercept_ = fitted_model.intercept_
    model.n_features_in_ = fitted_model.n_features_in_
    original = extract_linear_parameters(model)

    records = generate_records(n=100, seed=99, value_scale=5.0)
    with pytest.raises(RetrainFailed) as exc_info:
        RetrainEngine(max_iter=1).retrain(records, fitted_pipeline, original)
    assert "converge" in str(exc_info.value)


def test_overlapping_retrains_keep_convergence_check(monkeypatch, generate_records, training_records, fitted_pipeline, original):
    real_fit = PoissonRegressor.fit

    def slow_fit(self, X, y, sample_weight=None):
        result = real_fit(self, X, y, sample_weight=sample_weight)
        time.sleep(0.05)
        return result

    monkeypatch.setattr(PoissonRegressor, "fit", slow_fit)
    shifted = generate_records(n=100, seed=99, value_scale=5.0)

    with ThreadPoolExecutor(max_workers=4) as pool:
        converging = [
            pool.submit(RetrainEngine().retrain, training_records, fitted_pipeline, original) for _ in range(2)
        ]
        capped = [
            pool.submit(RetrainEngine(max_iter=1).retrain, shifted, fitted_pipeline, original) for _ in range(2)
        ]
        for future in converging:
            assert future.result().training_samples == len(training_records)
        for future in capped:
            with pytest.raises(RetrainFailed):
                future.result()


def test_invalid_target_fails(generate_records, fitted_pipeline, original):
    records = generate_records(n=30, seed=5, value_scale=-1.0)
    with pytest.raises(RetrainFailed):
        RetrainEngine().retrain(records, fitted_pipeline, original)


def test_feature_count_mismatch(training_records, fitted_pipeline):
    rng = np.random.default_rng(1)
    narrow = PoissonRegressor().fit(rng.normal(size=(20, 3)), rng.poisson(2.0, size=20))
    with pytest.raises(SchemaMismatch) as exc_info:
        RetrainEngine().retrain(training_records, fitted_pipeline, extract_linear_parameters(narrow))
    assert exc_info.value.expected == 3
    assert exc_info.value.actual == len(pipeline_feature_names(fitted_pipeline))


def test_pipeline_missing_columns_is_schema_mismatch(training_records, original):
    frame = pd.DataFrame({"unknown_column": [1.0, 2.0, 3.0]})
    pipeline = ColumnTransformer([("num", StandardScaler(), ["unknown_column"])]).fit(frame)
    with pytest.raises(SchemaMismatch):
        RetrainEngine().retrain(training_records, pipeline, original)


def test_feature_name_mismatch(training_records, fitted_pipeline):
    names = pipeline_feature_names(fitted_pipeline)
    rng = np.random.default_rng(2)
    frame = pd.DataFrame(rng.normal(size=(40, len(names))), columns=[f"other_{i}" for i in range(len(names))])
    model = PoissonRegressor().fit(frame, rng.poisson(2.0, size=40))
    with pytest.raises(SchemaMismatch):
        RetrainEngine().retrain(training_records, fitted_pipeline, extract_linear_parameters(model))


def test_pipeline_feature_names_without_support():
    assert pipeline_feature_names(object()) is None
