"""Tests for download/hasher.py: streaming digest and progress reporting."""

from __future__ import annotations

import hashlib
from pathlib import Path

import pytest

from patchsync.download import HashEngine
from patchsync.download.hasher import CHUNK_SIZE
from patchsync.exceptions import FileIOError


class TestHashSync:
    def test_sha256_uppercase(self, tmp_path: Path):
        path = tmp_path / "f.bin"
        path.write_bytes(b"hello patch")
        digest = HashEngine().hash_sync(str(path))
        assert digest == hashlib.sha256(b"hello patch").hexdigest().upper()

    def test_multi_chunk_file(self, tmp_path: Path):
        data = bytes(range(256)) * 100  # spans several 4 KiB chunks
        path = tmp_path / "f.bin"
        path.write_bytes(data)
        assert HashEngine().hash_sync(str(path)) == hashlib.sha256(data).hexdigest().upper()

    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(FileIOError):
            HashEngine().hash_sync(str(tmp_path / "missing.bin"))

    def test_progress_is_bounded(self, tmp_path: Path):
        path = tmp_path / "f.bin"
        path.write_bytes(b"x" * CHUNK_SIZE * 10)
        reported = []
        HashEngine(progress_step=CHUNK_SIZE * 5).hash_sync(str(path), reported.append)
        assert reported == [50, 100, 100]

    def test_progress_is_monotonic_percentage(self, tmp_path: Path):
        path = tmp_path / "f.bin"
        path.write_bytes(b"x" * (CHUNK_SIZE * 7 + 123))
        reported = []
        HashEngine(progress_step=CHUNK_SIZE).hash_sync(str(path), reported.append)
        assert reported == sorted(reported)
        assert all(0 <= p <= 100 for p in reported)
        assert reported[-1] == 100
        assert len(reported) <= 9

    def test_empty_file_reports_complete(self, tmp_path: Path):
        path = tmp_path / "empty.bin"
        path.write_bytes(b"")
        reported = []
        digest = HashEngine().hash_sync(str(path), reported.append)
        assert digest == hashlib.sha256(b"").hexdigest().upper()
        assert reported == [100]


class TestHashAsync:

    @pytest.mark.asyncio
    async def test_hash_in_background(self, tmp_path: Path):
        path = tmp_path / "f.bin"
        path.write_bytes(b"y" * CHUNK_SIZE * 4)
        reported = []
        digest = await HashEngine(progress_step=CHUNK_SIZE).hash(str(path), reported.append)
        assert digest == hashlib.sha256(b"y" * CHUNK_SIZE * 4).hexdigest().upper()
        assert reported[-1] == 100

    @pytest.mark.asyncio
    async def test_hash_missing_file(self, tmp_path: Path):
        with pytest.raises(FileIOError):
            await HashEngine().hash(str(tmp_path / "nope"))

    @pytest.mark.asyncio
    async def test_verify(self, tmp_path: Path):
        path = tmp_path / "f.bin"
        path.write_bytes(b"abc")
        expected = hashlib.sha256(b"abc").hexdigest()
        engine = HashEngine()
        assert await engine.verify(str(path), expected) is True
        assert await engine.verify(str(path), "00" * 32) is False
        assert await engine.verify(str(path), None) is True
        assert await engine.verify(str(tmp_path / "nope"), expected) is False
