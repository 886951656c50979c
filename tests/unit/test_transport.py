"""Tests for download/transport.py: single fetch, primary/fallback, progress."""

from __future__ import annotations

from pathlib import Path
from typing import List

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer as HttpServer

from patchsync.download import Transport
from patchsync.models import ManifestEntry

PAYLOAD = b"0123456789" * 20000  # ~195 KiB, several progress reports
UNREACHABLE = "http://127.0.0.1:1"


class _PatchServer:
    """Local server with /primary/<name>, /fallback/<name> and a failing route."""

    def __init__(self):
        self.hits: List[str] = []
        self.server: HttpServer = None

    async def __aenter__(self):
        async def ok(request):
            self.hits.append(request.path)
            return web.Response(body=PAYLOAD)

        async def broken(request):
            self.hits.append(request.path)
            return web.Response(status=500)

        app = web.Application()
        app.router.add_get("/primary/{name}", ok)
        app.router.add_get("/fallback/{name}", ok)
        app.router.add_get("/broken/{name}", broken)
        self.server = HttpServer(app)
        await self.server.start_server()
        return self

    async def __aexit__(self, *exc):
        await self.server.close()

    def url(self, path: str) -> str:
        return str(self.server.make_url(path))


class TestFallbackUrl:
    def test_deterministic(self):
        transport = Transport("http://host/Patch/Files/")
        assert transport.fallback_url("a.dat") == "http://host/Patch/Files/a.dat"

    def test_adds_separator(self):
        assert Transport("http://host/Files").fallback_url("a.dat") == "http://host/Files/a.dat"

    def test_candidates(self):
        transport = Transport("http://host/Files/")
        entry = ManifestEntry("a.dat", "AA", "http://cdn/a.dat")
        assert transport.candidate_urls(entry) == ["http://cdn/a.dat", "http://host/Files/a.dat"]

    def test_candidates_without_link(self):
        transport = Transport("http://host/Files/")
        assert transport.candidate_urls(ManifestEntry("a.dat", "AA")) == ["http://host/Files/a.dat"]


class TestFetch:

    @pytest.mark.asyncio
    async def test_downloads_with_progress(self, tmp_path: Path):
        progress = []
        dest = tmp_path / "Data" / "a.dat"
        async with _PatchServer() as srv:
            async with Transport(srv.url("/fallback/")) as transport:
                ok = await transport.fetch(
                    srv.url("/primary/a.dat"), str(dest), lambda r, t: progress.append((r, t))
                )

        assert ok is True
        assert dest.read_bytes() == PAYLOAD
        assert progress[-1] == (len(PAYLOAD), len(PAYLOAD))
        assert all(t == len(PAYLOAD) for _, t in progress)
        assert [r for r, _ in progress] == sorted(r for r, _ in progress)
        assert transport.bytes_downloaded == len(PAYLOAD)

    @pytest.mark.asyncio
    async def test_http_error_returns_false(self, tmp_path: Path):
        dest = tmp_path / "a.dat"
        async with _PatchServer() as srv:
            async with Transport(srv.url("/fallback/")) as transport:
                ok = await transport.fetch(srv.url("/broken/a.dat"), str(dest))
        assert ok is False
        assert not dest.exists()

    @pytest.mark.asyncio
    async def test_unreachable_returns_false(self, tmp_path: Path):
        async with Transport("http://unused/", connect_timeout=2.0) as transport:
            ok = await transport.fetch(f"{UNREACHABLE}/a.dat", str(tmp_path / "a.dat"))
        assert ok is False


class TestFetchEntry:

    @pytest.mark.asyncio
    async def test_primary_success_single_attempt(self, tmp_path: Path):
        async with _PatchServer() as srv:
            entry = ManifestEntry("a.dat", "AA", srv.url("/primary/a.dat"))
            async with Transport(srv.url("/fallback/")) as transport:
                ok = await transport.fetch_entry(entry, str(tmp_path / "a.dat"))
        assert ok is True
        assert srv.hits == ["/primary/a.dat"]

    @pytest.mark.asyncio
    async def test_fallback_after_primary_failure(self, tmp_path: Path):
        attempts = []
        async with _PatchServer() as srv:
            entry = ManifestEntry("a.dat", "AA", srv.url("/broken/a.dat"))
            async with Transport(srv.url("/fallback/")) as transport:
                ok = await transport.fetch_entry(
                    entry, str(tmp_path / "a.dat"), on_attempt=attempts.append
                )
        assert ok is True
        assert srv.hits == ["/broken/a.dat", "/fallback/a.dat"]
        assert len(attempts) == 2
        assert (tmp_path / "a.dat").read_bytes() == PAYLOAD

    @pytest.mark.asyncio
    async def test_unreachable_primary_then_fallback(self, tmp_path: Path):
        async with _PatchServer() as srv:
            entry = ManifestEntry("a.dat", "AA", f"{UNREACHABLE}/a.dat")
            async with Transport(srv.url("/fallback/"), connect_timeout=2.0) as transport:
                ok = await transport.fetch_entry(entry, str(tmp_path / "a.dat"))
        assert ok is True
        assert srv.hits == ["/fallback/a.dat"]

    @pytest.mark.asyncio
    async def test_both_fail_at_most_two_attempts(self, tmp_path: Path):
        async with _PatchServer() as srv:
            entry = ManifestEntry("a.dat", "AA", srv.url("/broken/a.dat"))
            async with Transport(srv.url("/broken/")) as transport:
                ok = await transport.fetch_entry(entry, str(tmp_path / "a.dat"))
        assert ok is False
        assert srv.hits == ["/broken/a.dat", "/broken/a.dat"]
        assert not (tmp_path / "a.dat").exists()

    @pytest.mark.asyncio
    async def test_verify_rejects_and_falls_back(self, tmp_path: Path):
        verified = []

        async def verify(path: str) -> bool:
            verified.append(path)
            return len(verified) > 1

        async with _PatchServer() as srv:
            entry = ManifestEntry("a.dat", "AA", srv.url("/primary/a.dat"))
            async with Transport(srv.url("/fallback/")) as transport:
                ok = await transport.fetch_entry(entry, str(tmp_path / "a.dat"), verify=verify)
        assert ok is True
        assert srv.hits == ["/primary/a.dat", "/fallback/a.dat"]
