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
Error kinds surfaced by a retrain invocation.

None of these are recovered inside the job. They propagate to the trigger,
which maps them to its own failure handling (HTTP status, retry, ...).
"""

from typing import Optional


class RetrainError(Exception):
    """Base class for every failure of a retrain invocation."""

    kind = "RetrainError"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.kind, "detail": self.message}


class ArtifactUnavailable(RetrainError):
    """The backing store could not supply a named artifact."""

    kind = "ArtifactUnavailable"

    def __init__(self, artifact_name: str, reason: str):
        super().__init__(f"Artifact {artifact_name!r} unavailable: {reason}")
        self.artifact_name = artifact_name


class ArtifactCorrupt(RetrainError):
    """An artifact could not be deserialized or its schema recovered."""

    kind = "ArtifactCorrupt"

    def __init__(self, artifact_path: str, reason: str):
        super().__init__(f"Artifact at {artifact_path} is corrupt: {reason}")
        self.artifact_path = artifact_path
        self.reason = reason


class UnsupportedModelType(RetrainError):
    """The loaded model does not expose linear coefficients and a bias."""

    kind = "UnsupportedModelType"

    def __init__(self, model_type: str, reason: str = "not a generalized linear regressor"):
        super().__init__(f"Unsupported model type {model_type}: {reason}")
        self.model_type = model_type


class MalformedRecord(RetrainError):
    """A data row failed to parse."""

    kind = "MalformedRecord"

    def __init__(self, line_number: int, field: Optional[str], value: Optional[str], reason: str):
        where = f"line {line_number}" if field is None else f"line {line_number}, field {field!r}"
        super().__init__(f"Malformed record at {where}: {reason}")
        self.line_number = line_number
        self.field = field
        self.value = value


class SchemaMismatch(RetrainError):
    """Feature counts or names disagree between pipeline and model(s)."""

    kind = "SchemaMismatch"

    def __init__(self, message: str, expected=None, actual=None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


class RetrainFailed(RetrainError):
    """The warm-started fit did not produce a usable model."""

    kind = "RetrainFailed"
