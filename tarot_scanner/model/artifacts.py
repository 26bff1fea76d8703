"""Fetching of model artifacts from HTTP hosts or the local filesystem."""

import asyncio
import json
from pathlib import Path
from typing import Any, Optional
from urllib.parse import urljoin, urlparse

import aiohttp

from ..utils.config import resolve_model_root, settings
from ..utils.error_handler import ArtifactError, NetworkError
from ..utils.log import get_logger
from ..utils.retry import is_retryable_error, retry

logger = get_logger(__name__)


def _is_transient(error: ArtifactError) -> bool:
    if isinstance(error, NetworkError):
        return True
    return error.status is not None and is_retryable_error(error)


def is_http_url(url: str) -> bool:
    return urlparse(url).scheme in ("http", "https")


def resolve_local_path(url: str, model_root: Optional[Path] = None) -> Path:
    """Map an artifact URL onto a file.

    ``file://`` URLs and paths that exist are used as-is; rooted web paths
    such as ``/model/model.json`` fall back to the model root directory.
    """
    parsed = urlparse(url)
    if parsed.scheme == "file":
        return Path(parsed.path)

    path = Path(url).expanduser()
    if path.exists() or not url.startswith("/"):
        return path
    return (model_root or resolve_model_root()) / url.lstrip("/")


def relative_artifact_url(base_url: str, name: str) -> str:
    """URL of a sibling artifact, e.g. a weight shard next to model.json."""
    if is_http_url(base_url):
        return urljoin(base_url, name)
    parsed = urlparse(base_url)
    base_path = parsed.path if parsed.scheme == "file" else base_url
    return str(Path(base_path).parent / name)


class ArtifactFetcher:
    """Reads model.json, metadata.json and weight shards."""

    def __init__(self, model_root: Optional[Path] = None, timeout_s: Optional[float] = None):
        self.model_root = model_root
        self.timeout_s = timeout_s or settings.HTTP_TIMEOUT_S
        self.session: Optional[aiohttp.ClientSession] = None

    async def _ensure_session(self) -> None:
        """Ensure aiohttp session exists."""
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.timeout_s)
            )

    @retry(max_attempts=3, base_delay=0.2, max_delay=3.0,
           exceptions=(ArtifactError,), should_retry=_is_transient, logger=logger)
    async def _fetch_http(self, url: str) -> bytes:
        await self._ensure_session()
        try:
            async with self.session.get(url) as response:
                if response.status != 200:
                    raise ArtifactError(
                        f"{Path(urlparse(url).path).name or url} not found ({response.status})."
                        if response.status == 404
                        else f"Request for {url} failed ({response.status}).",
                        url=url,
                        status=response.status,
                    )
                return await response.read()
        except (aiohttp.ClientConnectionError, asyncio.TimeoutError) as e:
            raise NetworkError(
                f"Could not reach {url}: {e}", url=url, details={"error": str(e)}
            ) from e

    async def _fetch_file(self, url: str) -> bytes:
        path = resolve_local_path(url, self.model_root)
        if not path.is_file():
            raise ArtifactError(f"{path.name} not found (404).", url=url, status=404,
                                details={"path": str(path)})
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise ArtifactError(f"Could not read {path}: {e}", url=url,
                                details={"path": str(path)}) from e

    async def fetch_bytes(self, url: str) -> bytes:
        if is_http_url(url):
            return await self._fetch_http(url)
        return await self._fetch_file(url)

    async def fetch_json(self, url: str) -> Any:
        raw = await self.fetch_bytes(url)
        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ArtifactError(
                f"Invalid JSON in {url}", url=url, details={"error": str(e)}
            ) from e

    async def close(self) -> None:
        if self.session is not None and not self.session.closed:
            await self.session.close()
        self.session = None
