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
import shutil
import logging
import tempfile
import threading
from pathlib import Path
from typing import Dict
from urllib.parse import urlparse, unquote

import requests

from .common.errors import ArtifactUnavailable


class ArtifactStore:
    """
    Fetches named artifacts from a backing store and caches them locally.

    ensure_local() is idempotent: once an artifact is cached it is returned
    without touching the backing store again. Fetches land in a temporary
    file and are moved into place atomically, so concurrent invocations
    (threads or processes) never observe a partial artifact.
    """

    def __init__(self, location: str, cache_dir: str, timeout: int = 30):
        self.location = location.rstrip("/")
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

        os.makedirs(self.cache_dir, exist_ok=True)

    @property
    def is_remote(self) -> bool:
        return urlparse(self.location).scheme in ("http", "https")

    def local_path(self, artifact_name: str) -> Path:
        return self.cache_dir / artifact_name

    def _lock_for(self, artifact_name: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(artifact_name)
            if lock is None:
                lock = threading.Lock()
                self._locks[artifact_name] = lock
            return lock

    @staticmethod
    def _is_cached(path: Path) -> bool:
        return path.is_file() and path.stat().st_size > 0

    def ensure_local(self, artifact_name: str) -> Path:
        """Return the local path of an artifact, fetching it first if absent."""
        dest = self.local_path(artifact_name)
        if self._is_cached(dest):
            logging.info(f"Artifact {artifact_name} already cached: {dest}")
            return dest

        with self._lock_for(artifact_name):
            # Another thread may have fetched it while we waited
            if self._is_cached(dest):
                return dest
            self.fetch(artifact_name, dest)
            return dest

    def fetch(self, artifact_name: str, dest: Path) -> None:
        """Unconditionally fetch an artifact into dest."""
        fd, tmp = tempfile.mkstemp(prefix=f".{artifact_name}.", suffix=".tmp", dir=str(dest.parent))
        try:
            with os.fdopen(fd, "wb") as f:
                if self.is_remote:
                    self._download(artifact_name, f)
                else:
                    self._copy(artifact_name, f)

            if os.path.getsize(tmp) == 0:
                raise ArtifactUnavailable(artifact_name, "backing store returned an empty artifact")

            # Atomic replace
            os.replace(tmp, dest)
            logging.info(f"Fetched {artifact_name} -> {dest}")
        finally:
            if os.path.exists(tmp):
                os.remove(tmp)

    def _download(self, artifact_name: str, f) -> None:
        url = f"{self.location}/{artifact_name}"
        try:
            with requests.get(url, timeout=self.timeout, stream=True) as dl:
                if dl.status_code != 200:
                    logging.error(f"Failed download {artifact_name}: {dl.status_code}")
                    raise ArtifactUnavailable(artifact_name, f"HTTP {dl.status_code} from {url}")
                for chunk in dl.iter_content(8192):
                    if chunk:
                        f.write(chunk)
        except requests.RequestException as e:
            logging.error(f"Network error for {artifact_name}: {e}")
            raise ArtifactUnavailable(artifact_name, f"network error: {e}") from e

    def _source_dir(self) -> Path:
        parsed = urlparse(self.location)
        if parsed.scheme == "file":
            return Path(unquote(parsed.path))
        return Path(self.location)

    def _copy(self, artifact_name: str, f) -> None:
        src = self._source_dir() / artifact_name
        try:
            with open(src, "rb") as s:
                shutil.copyfileobj(s, f, 8192)
        except OSError as e:
            logging.error(f"Filesystem error for {artifact_name}: {e}")
            raise ArtifactUnavailable(artifact_name, f"cannot read {src}: {e}") from e

