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
Record Parser: turns a delimited text blob into HousingRecord objects.

Format: a header line (ignored), then comma separated rows in the fixed
column layout of FIELD_COLUMNS. Parsing is strict once past the header;
the first row whose first field is empty ends the data.
"""

import logging
from dataclasses import asdict, dataclass, fields
from typing import Iterable, Iterator, List

import pandas as pd

from .common.artifact_constants import CATEGORICAL_FIELDS, FIELD_COLUMNS, FIELD_DELIMITER
from .common.errors import MalformedRecord

REQUIRED_COLUMNS = max(column for _, column in FIELD_COLUMNS) + 1


@dataclass(frozen=True)
class HousingRecord:
    longitude: float
    latitude: float
    housing_median_age: float
    total_rooms: float
    total_bedrooms: float
    population: float
    households: float
    median_income: float
    median_house_value: float
    ocean_proximity: str


FIELD_NAMES = [f.name for f in fields(HousingRecord)]


def decode_blob(data: bytes) -> str:
    """Decode a raw payload as UTF-8, dropping a byte order mark if present."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        line_number = data[:e.start].count(b"\n") + 1
        raise MalformedRecord(line_number, None, None, f"payload is not valid UTF-8: {e.reason}") from e


def _parse_row(row: List[str], line_number: int) -> HousingRecord:
    if len(row) < REQUIRED_COLUMNS:
        raise MalformedRecord(
            line_number, None, FIELD_DELIMITER.join(row),
            f"expected at least {REQUIRED_COLUMNS} fields, got {len(row)}",
        )

    values = {}
    for field, column in FIELD_COLUMNS:
        raw = row[column]
        if field in CATEGORICAL_FIELDS:
            values[field] = raw.strip()
            continue
        try:
            values[field] = float(raw)
        except ValueError:
            raise MalformedRecord(line_number, field, raw, f"{raw!r} is not a number") from None
    return HousingRecord(**values)


def parse_records(raw_text: str) -> Iterator[HousingRecord]:
    """
    Lazily parse records from raw_text.

    The returned generator can be consumed once. It stops at the terminator
    row (empty first field) without emitting it, and raises MalformedRecord
    on the first row that cannot be parsed. Wholly blank lines are accepted
    only as trailing padding.
    """
    lines = [line.rstrip("\r") for line in raw_text.split("\n")]

    for idx in range(1, len(lines)):
        line = lines[idx]
        line_number = idx + 1

        if not line.strip():
            if any(rest.strip() for rest in lines[idx + 1:]):
                raise MalformedRecord(line_number, None, line, "blank line inside data")
            return

        row = line.split(FIELD_DELIMITER)
        if not row[0].strip():
            logging.info(f"End-of-data marker at line {line_number}")
            return

        yield _parse_row(row, line_number)


def records_to_frame(records: Iterable[HousingRecord]) -> pd.DataFrame:
    return pd.DataFrame([asdict(r) for r in records], columns=FIELD_NAMES)
