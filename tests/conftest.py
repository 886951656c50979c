"""Shared test fixtures.

Provides a config rooted in a temp directory, an in-memory transport and
manifest fetcher, and a listener that records every callback.
No network access; HTTP tests spin up a local aiohttp TestServer.
"""

from __future__ import annotations

import hashlib
import os
from pathlib import Path
from typing import Dict, List, Optional, Set

import pytest

from patchsync.download import Transport
from patchsync.exceptions import ManifestNetworkError
from patchsync.listener import PatchListener
from patchsync.models import DownloadConfig, PathConfig, PatchConfig, ServerConfig
from patchsync.services import ManifestFetcher

FALLBACK_BASE = "http://fallback.test/Patch/Files/"


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest().upper()


class FakeTransport(Transport):
    """Transport whose single-attempt fetch writes from an in-memory table."""

    def __init__(
        self,
        files: Dict[str, bytes],
        failing: Optional[Set[str]] = None,
        fallback_base_url: str = FALLBACK_BASE,
    ):
        super().__init__(fallback_base_url=fallback_base_url)
        self.files = files
        self.failing: Set[str] = set(failing or ())
        self.calls: List[str] = []

    async def fetch(self, url, destination, on_progress=None) -> bool:
        self.calls.append(url)
        if url in self.failing:
            return False
        data = self.files[os.path.basename(destination)]
        with open(destination, "wb") as f:
            f.write(data)
        self.bytes_downloaded += len(data)
        if on_progress:
            on_progress(len(data) // 2, len(data))
            on_progress(len(data), len(data))
        return True

    async def close(self):
        pass


class FakeFetcher(ManifestFetcher):
    """Manifest fetcher returning fixed text instead of hitting the network."""

    def __init__(self, text: Optional[str], manifest_path: Optional[str] = None):
        super().__init__(manifest_path=manifest_path)
        self.text = text
        self.requests: List[str] = []

    async def _request(self, uri: str) -> str:
        self.requests.append(uri)
        if self.text is None:
            raise ManifestNetworkError("unreachable", context={"url": uri})
        return self.text

    async def close(self):
        pass


class RecordingListener(PatchListener):
    def __init__(self):
        self.percents: List[int] = []
        self.statuses: List[str] = []
        self.patching_changes: List[bool] = []
        self.finished = 0
        self.errors: List[str] = []

    def on_progress_percent(self, percent: int) -> None:
        self.percents.append(percent)

    def on_status_text(self, text: str) -> None:
        self.statuses.append(text)

    def on_patching_state_changed(self, patching: bool) -> None:
        self.patching_changes.append(patching)

    def on_finished(self) -> None:
        self.finished += 1

    def on_error(self, message: str) -> None:
        self.errors.append(message)


@pytest.fixture
def config(tmp_path: Path) -> PatchConfig:
    return PatchConfig(
        server=ServerConfig(
            manifest_url="http://patch.test/Patch/plist.txt",
            fallback_base_url=FALLBACK_BASE,
        ),
        paths=PathConfig(
            data_dir=str(tmp_path / "Data"),
            cache_dir=str(tmp_path / "Cache"),
            log_file=str(tmp_path / "Logs" / "patchsync.log"),
        ),
        download=DownloadConfig(),
    )


@pytest.fixture
def listener() -> RecordingListener:
    return RecordingListener()
