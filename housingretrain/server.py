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
import logging
import threading
from datetime import datetime, timezone
from typing import List, Optional

import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .common.errors import (
    ArtifactCorrupt,
    ArtifactUnavailable,
    MalformedRecord,
    RetrainError,
    RetrainFailed,
    SchemaMismatch,
    UnsupportedModelType,
)
from .retrain_job import RetrainJob, RetrainOutcome
from .settings import RetrainSettings

settings = RetrainSettings.from_env()
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")

# Status the trigger sees for each failure kind; 503 is the one worth retrying
ERROR_STATUS = {
    ArtifactUnavailable: 503,
    MalformedRecord: 400,
    SchemaMismatch: 422,
    UnsupportedModelType: 422,
    ArtifactCorrupt: 500,
    RetrainFailed: 500,
}

_job: Optional[RetrainJob] = None
_job_lock = threading.Lock()


def get_job() -> RetrainJob:
    global _job
    with _job_lock:
        if _job is None:
            _job = RetrainJob(settings)
        return _job


# --- Pydantic Models for API ---
class DriftRowResponse(BaseModel):
    feature: str
    original: float = Field(..., description="Weight of the original model")
    retrained: float = Field(..., description="Weight after the warm-started retrain")
    difference: float = Field(..., description="original - retrained; positive means the weight shrank")


class RetrainResponse(BaseModel):
    name: str
    record_count: int = Field(..., ge=0)
    rows: List[DriftRowResponse]
    original_bias: float
    retrained_bias: float
    bias_difference: float
    completed_at: datetime

    @classmethod
    def from_outcome(cls, outcome: RetrainOutcome) -> "RetrainResponse":
        report = outcome.report
        return cls(
            name=outcome.name,
            record_count=outcome.record_count,
            rows=[
                DriftRowResponse(
                    feature=r.feature,
                    original=r.original,
                    retrained=r.retrained,
                    difference=r.difference,
                )
                for r in report.rows
            ],
            original_bias=report.original_bias,
            retrained_bias=report.retrained_bias,
            bias_difference=report.bias_difference,
            completed_at=datetime.now(timezone.utc),
        )


app = FastAPI(
    title="Housing Retrain Job",
    description="Warm-starts the housing regression model on new records and reports weight drift.",
)


@app.on_event("startup")
async def startup_event():
    logging.info(f"Retrain job starting up, artifact store: {settings.artifact_store_url}")


@app.exception_handler(RetrainError)
async def retrain_error_handler(request: Request, exc: RetrainError):
    status_code = ERROR_STATUS.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    logging.error(f"Retrain failed for {request.url.path}: {exc}", exc_info=exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.post("/retrain/{name:path}", response_model=RetrainResponse)
async def retrain_endpoint(name: str, request: Request, job: RetrainJob = Depends(get_job)):
    """
    Trigger a retrain with the request body as the new-data blob.

    The body is the raw CSV payload; `name` is its logical blob name.
    """
    blob = await request.body()
    outcome = await job.arun(blob, name)
    return RetrainResponse.from_outcome(outcome)


@app.get("/healthz", status_code=status.HTTP_200_OK)
async def health_check():
    return {"status": "ok"}


@app.get("/readyz", status_code=status.HTTP_200_OK)
async def readiness_check(job: RetrainJob = Depends(get_job)):
    if not job.settings.artifact_store_url:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Artifact store is not configured.")
    cached = {
        artifact: job.store.local_path(artifact).is_file()
        for artifact in (job.settings.pipeline_artifact_name, job.settings.model_artifact_name)
    }
    return {"status": "ready", "cached": cached}


@app.get("/", include_in_schema=False)
async def root():
    return {
        "message": "Housing Retrain Job is running.",
        "artifact_store": settings.artifact_store_url,
        "description": "POST a CSV blob to /retrain/{name} to report weight drift",
    }


if __name__ == "__main__":
    uvicorn.run("housingretrain.server:app", host=settings.host, port=settings.port)
