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
import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .common.artifact_constants import PIPELINE_ARTIFACT_NAME, MODEL_ARTIFACT_NAME


class RetrainSettings(BaseModel):
    """
    Configuration for the retrain job.

    Populated once at process start (see from_env) and handed to the job
    explicitly; nothing in the pipeline reads the environment itself.
    """
    model_config = ConfigDict(protected_namespaces=())

    # Backing store location: http(s) base URL, file:// URL or directory path
    artifact_store_url: str = Field(..., description="Location of the backing artifact store")

    # Local cache for fetched artifacts
    artifact_cache_dir: str = Field(default="/local_models")
    pipeline_artifact_name: str = Field(default=PIPELINE_ARTIFACT_NAME)
    model_artifact_name: str = Field(default=MODEL_ARTIFACT_NAME)

    # HTTP timeout for artifact fetches (seconds)
    http_timeout: int = Field(default=30, gt=0)

    # Overrides the original model's max_iter for the warm-started fit
    retrain_max_iter: Optional[int] = Field(default=None, gt=0)

    # Server host/port
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    @classmethod
    def from_env(cls) -> "RetrainSettings":
        max_iter = os.getenv("RETRAIN_MAX_ITER", "")
        return cls(
            artifact_store_url=os.getenv("ARTIFACT_STORE_URL", "http://model-store:8000/models"),
            artifact_cache_dir=os.getenv("ARTIFACT_CACHE_DIR", "/local_models"),
            pipeline_artifact_name=os.getenv("PIPELINE_ARTIFACT_NAME", PIPELINE_ARTIFACT_NAME),
            model_artifact_name=os.getenv("MODEL_ARTIFACT_NAME", MODEL_ARTIFACT_NAME),
            http_timeout=int(os.getenv("HTTP_TIMEOUT", "30")),
            retrain_max_iter=int(max_iter) if max_iter else None,
            host=os.getenv("RETRAIN_HOST", "0.0.0.0"),
            port=int(os.getenv("RETRAIN_PORT", "8000")),
        )
