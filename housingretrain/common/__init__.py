"""
Common utilities and shared code for the housing retrain job.

This package contains code shared by every stage of the job:
- artifact_constants: Centralized artifact names and record column layout
- errors: The error kinds an invocation can fail with
"""

# Re-export commonly used classes and constants for convenience
from .artifact_constants import (
    PIPELINE_ARTIFACT_NAME,
    MODEL_ARTIFACT_NAME,
    LABEL_COLUMN,
    FIELD_COLUMNS,
)

from .errors import (
    RetrainError,
    ArtifactUnavailable,
    ArtifactCorrupt,
    UnsupportedModelType,
    MalformedRecord,
    SchemaMismatch,
    RetrainFailed,
)

__all__ = [
    # Artifact constants
    'PIPELINE_ARTIFACT_NAME',
    'MODEL_ARTIFACT_NAME',
    'LABEL_COLUMN',
    'FIELD_COLUMNS',
    # Errors
    'RetrainError',
    'ArtifactUnavailable',
    'ArtifactCorrupt',
    'UnsupportedModelType',
    'MalformedRecord',
    'SchemaMismatch',
    'RetrainFailed',
]
