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
Artifact Constants

Shared constants for artifact naming and the housing record layout.
This keeps the store, the parser and the retrain engine in agreement
and eliminates hardcoded strings.
"""

# Logical artifact names in the backing store
# Note: extensions included, the cache stores files under these exact names
PIPELINE_ARTIFACT_NAME = "housing-data-prep.joblib"   # joblib serialized feature pipeline
MODEL_ARTIFACT_NAME = "housing-trainer.joblib"        # joblib serialized regression model

# Regression target column
LABEL_COLUMN = "median_house_value"

# Input column index for each record field.
# total_bedrooms and population intentionally share column 4.
FIELD_COLUMNS = (
    ("longitude", 0),
    ("latitude", 1),
    ("housing_median_age", 2),
    ("total_rooms", 3),
    ("total_bedrooms", 4),
    ("population", 4),
    ("households", 5),
    ("median_income", 6),
    ("median_house_value", 7),
    ("ocean_proximity", 8),
)

CATEGORICAL_FIELDS = frozenset({"ocean_proximity"})

FIELD_DELIMITER = ","
