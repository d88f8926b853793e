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
import sys
import logging
from dataclasses import dataclass
from typing import Optional, Sequence, TextIO, Tuple

import numpy as np

from .common.errors import SchemaMismatch
from .model_loader import RegressionModel

TABLE_HEADER = "Original\tRetrained\tDifference"


@dataclass(frozen=True)
class DriftRow:
    feature: str
    original: float
    retrained: float
    difference: float


@dataclass(frozen=True)
class WeightDiffReport:
    rows: Tuple[DriftRow, ...]
    original_bias: float
    retrained_bias: float
    bias_difference: float

    def __len__(self) -> int:
        return len(self.rows)

    def __getitem__(self, i: int) -> DriftRow:
        return self.rows[i]

    @property
    def max_abs_difference(self) -> float:
        return max((abs(r.difference) for r in self.rows), default=0.0)


def compare(
    original: RegressionModel,
    retrained: RegressionModel,
    feature_names: Optional[Sequence[str]] = None,
) -> WeightDiffReport:
    """
    Per-coefficient drift, original minus retrained.

    A positive difference means the coefficient shrank after retraining.
    """
    if len(original.weights) != len(retrained.weights):
        raise SchemaMismatch(
            f"Coefficient count mismatch: original has {len(original.weights)}, "
            f"retrained has {len(retrained.weights)}",
            expected=len(original.weights),
            actual=len(retrained.weights),
        )

    if feature_names is None:
        feature_names = original.schema.feature_names
    if feature_names is None or len(feature_names) != len(original.weights):
        feature_names = [f"w{i}" for i in range(len(original.weights))]

    before = np.asarray(original.weights, dtype=np.float64)
    after = np.asarray(retrained.weights, dtype=np.float64)
    diffs = before - after

    rows = tuple(
        DriftRow(feature=str(name), original=float(o), retrained=float(r), difference=float(d))
        for name, o, r, d in zip(feature_names, before, after, diffs)
    )
    return WeightDiffReport(
        rows=rows,
        original_bias=original.bias,
        retrained_bias=retrained.bias,
        bias_difference=original.bias - retrained.bias,
    )


def render_table(report: WeightDiffReport) -> str:
    lines = [TABLE_HEADER]
    for row in report.rows:
        lines.append(f"{row.original}\t{row.retrained}\t{row.difference}")
    return "\n".join(lines) + "\n"


def emit_report(report: WeightDiffReport, stream: Optional[TextIO] = None) -> None:
    """Write the drift table to the operator console and log a summary."""
    out = stream if stream is not None else sys.stdout
    out.write(render_table(report))
    out.flush()
    logging.info(
        f"Weight drift: {len(report)} coefficients, "
        f"max |difference|={report.max_abs_difference:.6g}, "
        f"bias difference={report.bias_difference:.6g}"
    )
