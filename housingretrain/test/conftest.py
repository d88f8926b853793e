import joblib
import numpy as np
import pytest
from sklearn.compose import ColumnTransformer
from sklearn.linear_model import PoissonRegressor
from sklearn.preprocessing import OneHotEncoder, StandardScaler

from housingretrain.common.artifact_constants import (
    FIELD_COLUMNS,
    LABEL_COLUMN,
    MODEL_ARTIFACT_NAME,
    PIPELINE_ARTIFACT_NAME,
)
from housingretrain.record_parser import HousingRecord, records_to_frame
from housingretrain.settings import RetrainSettings

HEADER = ("longitude,latitude,housing_median_age,total_rooms,total_bedrooms,"
          "population,households,median_income,median_house_value,ocean_proximity")
OCEAN = ["NEAR BAY", "INLAND", "<1H OCEAN", "NEAR OCEAN"]
NUMERIC_FEATURES = [
    "longitude", "latitude", "housing_median_age", "total_rooms",
    "total_bedrooms", "population", "households", "median_income",
]


def _generate_records(n=200, seed=42, value_scale=1.0):
    rng = np.random.default_rng(seed)
    records = []
    for i in range(n):
        income = rng.uniform(1.0, 10.0)
        age = rng.uniform(1.0, 50.0)
        bedrooms = float(rng.integers(100, 1500))
        ocean = OCEAN[i % len(OCEAN)]
        mu = np.exp(0.2 + 0.15 * income + 0.01 * age + (0.3 if ocean == "NEAR BAY" else 0.0))
        records.append(HousingRecord(
            longitude=float(rng.uniform(-124.0, -114.0)),
            latitude=float(rng.uniform(32.0, 42.0)),
            housing_median_age=float(age),
            total_rooms=float(rng.integers(500, 6000)),
            # column 4 feeds both fields
            total_bedrooms=bedrooms,
            population=bedrooms,
            households=float(rng.integers(100, 1200)),
            median_income=float(income),
            median_house_value=float(value_scale * rng.poisson(mu)),
            ocean_proximity=ocean,
        ))
    return records


def _to_csv(records, terminator=True):
    width = max(column for _, column in FIELD_COLUMNS) + 1
    lines = [HEADER]
    for r in records:
        row = [""] * width
        for field, column in FIELD_COLUMNS:
            row[column] = str(getattr(r, field))
        lines.append(",".join(row))
    if terminator:
        lines.append("," * (width - 1))
    return "\n".join(lines) + "\n"


@pytest.fixture
def generate_records():
    return _generate_records


@pytest.fixture
def to_csv():
    return _to_csv


@pytest.fixture
def training_records():
    return _generate_records(n=200, seed=42)


@pytest.fixture
def fitted_pipeline(training_records):
    frame = records_to_frame(training_records).drop(columns=[LABEL_COLUMN])
    pipeline = ColumnTransformer([
        ("num", StandardScaler(), NUMERIC_FEATURES),
        ("cat", OneHotEncoder(handle_unknown="ignore"), ["ocean_proximity"]),
    ])
    pipeline.fit(frame)
    return pipeline


@pytest.fixture
def fitted_model(training_records, fitted_pipeline):
    frame = records_to_frame(training_records)
    y = frame.pop(LABEL_COLUMN).to_numpy()
    X = fitted_pipeline.transform(frame)
    model = PoissonRegressor(alpha=0.01, max_iter=1000)
    model.fit(X, y)
    return model


@pytest.fixture
def store_dir(tmp_path, fitted_pipeline, fitted_model):
    """A local backing store holding both artifacts."""
    store = tmp_path / "store"
    store.mkdir()
    joblib.dump(fitted_pipeline, store / PIPELINE_ARTIFACT_NAME)
    joblib.dump(fitted_model, store / MODEL_ARTIFACT_NAME)
    return store


@pytest.fixture
def settings(tmp_path, store_dir):
    return RetrainSettings(
        artifact_store_url=str(store_dir),
        artifact_cache_dir=str(tmp_path / "cache"),
    )
