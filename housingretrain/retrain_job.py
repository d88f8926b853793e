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
Retrain Job: one triggered invocation, end to end.

ensure artifacts -> load pipeline + model -> parse payload -> warm-started
retrain -> drift report. Every stage raises a RetrainError subclass on
failure; the report is only emitted once the whole run has succeeded.
"""

import logging
from dataclasses import dataclass
from typing import Optional, TextIO, Tuple

from fastapi.concurrency import run_in_threadpool

from .artifact_store import ArtifactStore
from .drift_reporter import WeightDiffReport, compare, emit_report
from .model_loader import RegressionModel, load_pipeline, load_regression_model
from .record_parser import decode_blob, parse_records
from .retrain_engine import RetrainEngine, pipeline_feature_names
from .settings import RetrainSettings


@dataclass(frozen=True)
class RetrainOutcome:
    name: str
    record_count: int
    report: WeightDiffReport


class RetrainJob:
    def __init__(
        self,
        settings: RetrainSettings,
        store: Optional[ArtifactStore] = None,
        engine: Optional[RetrainEngine] = None,
        stream: Optional[TextIO] = None,
    ):
        self.settings = settings
        self.store = store or ArtifactStore(
            settings.artifact_store_url,
            settings.artifact_cache_dir,
            timeout=settings.http_timeout,
        )
        self.engine = engine or RetrainEngine(max_iter=settings.retrain_max_iter)
        self.stream = stream

    def load_artifacts(self) -> Tuple[object, RegressionModel]:
        """Make sure both artifacts are cached, then load them."""
        pipeline_path = self.store.ensure_local(self.settings.pipeline_artifact_name)
        model_path = self.store.ensure_local(self.settings.model_artifact_name)

        original, _ = load_regression_model(model_path)
        pipeline = load_pipeline(pipeline_path)
        return pipeline, original

    def _finish(self, name: str, pipeline, original: RegressionModel, retrained: RegressionModel) -> RetrainOutcome:
        names = original.schema.feature_names or pipeline_feature_names(pipeline)
        report = compare(original, retrained, names)
        emit_report(report, self.stream)
        return RetrainOutcome(name=name, record_count=retrained.training_samples or 0, report=report)

    def run(self, blob: bytes, name: str) -> RetrainOutcome:
        logging.info(f"Processing blob Name:{name} Size: {len(blob)} Bytes")
        pipeline, original = self.load_artifacts()

        records = parse_records(decode_blob(blob))
        retrained = self.engine.retrain(records, pipeline, original)
        return self._finish(name, pipeline, original, retrained)

    async def arun(self, blob: bytes, name: str) -> RetrainOutcome:
        """Same as run(), suspending on artifact fetch and on the model fit."""
        logging.info(f"Processing blob Name:{name} Size: {len(blob)} Bytes")
        pipeline, original = await run_in_threadpool(self.load_artifacts)

        records = parse_records(decode_blob(blob))
        retrained = await run_in_threadpool(self.engine.retrain, records, pipeline, original)
        return self._finish(name, pipeline, original, retrained)
