"""Tests for model artifact fetching."""

import asyncio
import json
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest

from tarot_scanner.model.artifacts import (
    ArtifactFetcher,
    is_http_url,
    relative_artifact_url,
    resolve_local_path,
)
from tarot_scanner.utils.error_handler import ArtifactError, NetworkError


def _response(status, body=b""):
    response = MagicMock()
    response.status = status
    response.read = AsyncMock(return_value=body)
    context = MagicMock()
    context.__aenter__ = AsyncMock(return_value=response)
    context.__aexit__ = AsyncMock(return_value=None)
    return context


def _session(*responses):
    session = MagicMock()
    session.closed = False
    session.get.side_effect = list(responses)
    session.close = AsyncMock()
    return session


class TestPaths:
    """Test URL and path resolution."""

    def test_is_http_url(self):
        assert is_http_url("https://example.com/model/model.json")
        assert is_http_url("http://localhost:8000/model.json")
        assert not is_http_url("/model/model.json")
        assert not is_http_url("file:///tmp/model.json")

    def test_rooted_web_path_uses_model_root(self, temp_dirs):
        path = resolve_local_path("/model/model.json", temp_dirs['temp_dir'])
        assert path == temp_dirs['temp_dir'] / "model" / "model.json"

    def test_existing_absolute_path_kept(self, temp_dirs):
        target = temp_dirs['model_dir'] / "model.json"
        target.write_text("{}")
        assert resolve_local_path(str(target), Path("/elsewhere")) == target

    def test_file_url(self):
        assert resolve_local_path("file:///tmp/x/model.json") == Path("/tmp/x/model.json")

    def test_relative_artifact_url(self):
        assert relative_artifact_url("https://host/m/model.json", "weights.bin") == "https://host/m/weights.bin"
        assert relative_artifact_url("/model/model.json", "group1-shard1of1.bin") == "/model/group1-shard1of1.bin"
        assert relative_artifact_url("file:///tmp/m/model.json", "w.bin") == "/tmp/m/w.bin"


class TestLocalFetch:
    """Test filesystem fetches."""

    @pytest.mark.asyncio
    async def test_fetch_json(self, temp_dirs):
        (temp_dirs['model_dir'] / "metadata.json").write_text(json.dumps({"labels": ["a"]}))
        fetcher = ArtifactFetcher(model_root=temp_dirs['temp_dir'])

        assert await fetcher.fetch_json("/model/metadata.json") == {"labels": ["a"]}

    @pytest.mark.asyncio
    async def test_missing_file_is_404(self, temp_dirs):
        fetcher = ArtifactFetcher(model_root=temp_dirs['temp_dir'])

        with pytest.raises(ArtifactError) as exc_info:
            await fetcher.fetch_json("/model/model.json")

        assert exc_info.value.status == 404
        assert exc_info.value.is_missing
        assert exc_info.value.message == "model.json not found (404)."

    @pytest.mark.asyncio
    async def test_invalid_json_is_not_missing(self, temp_dirs):
        (temp_dirs['model_dir'] / "model.json").write_text("<html>oops</html>")
        fetcher = ArtifactFetcher(model_root=temp_dirs['temp_dir'])

        with pytest.raises(ArtifactError) as exc_info:
            await fetcher.fetch_json("/model/model.json")

        assert exc_info.value.status is None
        assert not exc_info.value.is_missing


class TestHttpFetch:
    """Test HTTP fetches and their retry behaviour."""

    @pytest.mark.asyncio
    async def test_fetch_ok(self):
        fetcher = ArtifactFetcher()
        fetcher.session = _session(_response(200, b'{"format": "layers-model"}'))

        assert await fetcher.fetch_json("https://host/model/model.json") == {"format": "layers-model"}

    @pytest.mark.asyncio
    async def test_404_is_not_retried(self):
        fetcher = ArtifactFetcher()
        fetcher.session = _session(_response(404))

        with patch('tarot_scanner.utils.retry.asyncio.sleep') as mock_sleep:
            with pytest.raises(ArtifactError) as exc_info:
                await fetcher.fetch_bytes("https://host/model/metadata.json")

        assert exc_info.value.is_missing
        assert exc_info.value.message == "metadata.json not found (404)."
        assert fetcher.session.get.call_count == 1
        mock_sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_500_then_200_retries(self):
        fetcher = ArtifactFetcher()
        fetcher.session = _session(_response(500), _response(200, b"ok"))

        with patch('tarot_scanner.utils.retry.asyncio.sleep', new_callable=AsyncMock) as mock_sleep:
            assert await fetcher.fetch_bytes("https://host/model/weights.bin") == b"ok"

        assert fetcher.session.get.call_count == 2
        assert mock_sleep.call_count == 1

    @pytest.mark.asyncio
    async def test_connection_error_exhausts_retries(self):
        fetcher = ArtifactFetcher()
        session = MagicMock()
        session.closed = False
        session.get.side_effect = aiohttp.ClientConnectionError("refused")
        fetcher.session = session

        with patch('tarot_scanner.utils.retry.asyncio.sleep', new_callable=AsyncMock):
            with pytest.raises(NetworkError) as exc_info:
                await fetcher.fetch_bytes("https://host/model/model.json")

        assert session.get.call_count == 3
        assert exc_info.value.status is None
        assert not exc_info.value.is_missing

    @pytest.mark.asyncio
    async def test_close(self):
        fetcher = ArtifactFetcher()
        session = _session()
        fetcher.session = session

        await fetcher.close()

        session.close.assert_awaited_once()
        assert fetcher.session is None
