"""Tests for the streaming download helper."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from caption_orchestrator.api.errors import NetworkError, ProviderError
from caption_orchestrator.core.download import download_file


def _download(handler, url, destination):
    return asyncio.run(download_file(url, destination, transport=httpx.MockTransport(handler)))


class TestDownloadFile:
    def test_writes_body_and_creates_parents(self, tmp_path):
        destination = tmp_path / "nested" / "dir" / "video.mp4"
        result = _download(
            lambda r: httpx.Response(200, content=b"\x00\x01video-bytes"),
            "https://cdn.test/video.mp4",
            destination,
        )
        assert result == destination
        assert destination.read_bytes() == b"\x00\x01video-bytes"

    def test_follows_redirect(self, tmp_path):
        def handler(request):
            if request.url.path == "/old":
                return httpx.Response(302, headers={"location": "https://cdn.test/new"})
            return httpx.Response(200, content=b"moved")

        destination = tmp_path / "video.mp4"
        _download(handler, "https://cdn.test/old", destination)
        assert destination.read_bytes() == b"moved"

    def test_http_error_leaves_no_file(self, tmp_path):
        destination = tmp_path / "video.mp4"
        with pytest.raises(ProviderError) as exc_info:
            _download(lambda r: httpx.Response(404, text="missing"), "https://cdn.test/x", destination)
        assert exc_info.value.status_code == 404
        assert not destination.exists()

    def test_transport_error_raises_network_error(self, tmp_path):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        destination = tmp_path / "video.mp4"
        with pytest.raises(NetworkError):
            _download(handler, "https://cdn.test/x", destination)
        assert not destination.exists()

    def test_error_mid_stream_removes_partial_file(self, tmp_path):
        async def broken_body():
            yield b"first-chunk"
            raise RuntimeError("stream broke")

        destination = tmp_path / "video.mp4"
        with pytest.raises(RuntimeError, match="stream broke"):
            _download(lambda r: httpx.Response(200, content=broken_body()), "https://cdn.test/x", destination)
        assert not destination.exists()

    def test_redirect_loop_leaves_no_file(self, tmp_path):
        def handler(request):
            return httpx.Response(302, headers={"location": "https://cdn.test/loop"})

        destination = tmp_path / "video.mp4"
        with pytest.raises(httpx.TooManyRedirects):
            _download(handler, "https://cdn.test/start", destination)
        assert not destination.exists()
