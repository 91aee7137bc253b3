"""On-disk cache for line lists published at a URL.

A cached line list is stored under its URL hash with the URL's file suffix
(so the reader can pick CSV or parquet), next to a JSON sidecar holding the
validators needed for conditional requests and the checksum of the body.
"""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import asdict, dataclass
from pathlib import Path

import httpx

from .config import Config
from .utils import file_sha256

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CachedFile:
    path: Path
    meta_path: Path


@dataclass(frozen=True)
class SourceMeta:
    """Validators and checksum recorded for a downloaded line list."""

    url: str
    etag: str = ""
    last_modified: str = ""
    sha256: str = ""

    def conditional_headers(self) -> dict[str, str]:
        headers: dict[str, str] = {}
        if self.etag:
            headers["If-None-Match"] = self.etag
        if self.last_modified:
            headers["If-Modified-Since"] = self.last_modified
        return headers


class LineListCache:
    def __init__(self, root: Path) -> None:
        self.root = root
        self.root.mkdir(parents=True, exist_ok=True)

    def locate(self, url: str) -> CachedFile:
        key = hashlib.sha256(url.encode("utf-8")).hexdigest()
        suffix = Path(httpx.URL(url).path).suffix
        return CachedFile(path=self.root / f"{key}{suffix}", meta_path=self.root / f"{key}.json")

    def load_meta(self, url: str) -> SourceMeta | None:
        cached = self.locate(url)
        if not cached.path.exists() or not cached.meta_path.exists():
            return None
        return SourceMeta(**json.loads(cached.meta_path.read_text()))

    def store(self, url: str, response: httpx.Response) -> Path:
        cached = self.locate(url)
        cached.path.write_bytes(response.content)
        meta = SourceMeta(
            url=url,
            etag=response.headers.get("etag", ""),
            last_modified=response.headers.get("last-modified", ""),
            sha256=file_sha256(cached.path),
        )
        cached.meta_path.write_text(json.dumps(asdict(meta), indent=2, sort_keys=True))
        return cached.path


def _build_client(config: Config) -> httpx.Client:
    headers = {"User-Agent": config.user_agent}
    return httpx.Client(timeout=config.timeout_seconds, headers=headers, follow_redirects=True)


def cached_get(url: str, config: Config, *, refresh: bool = False) -> Path:
    """Return a local copy of the line list at ``url``.

    The cached copy is revalidated with ETag / Last-Modified and reused on
    ``304 Not Modified``. When the server cannot be reached the cached copy
    is used if one exists.

    Args:
        url: http(s) URL of a CSV or parquet line list.
        config: Supplies the cache directory, timeout and User-Agent.
        refresh: Skip revalidation and download the file again.

    Raises:
        httpx.HTTPStatusError: On an error response.
        httpx.TransportError: If the server is unreachable and nothing is cached.
    """
    cache = LineListCache(config.cache_dir / "line_lists")
    meta = None if refresh else cache.load_meta(url)
    headers = meta.conditional_headers() if meta is not None else {}

    with _build_client(config) as client:
        try:
            response = client.get(url, headers=headers)
        except httpx.TransportError as exc:
            if meta is None:
                raise
            logger.warning("Could not reach %s (%s); using cached copy", url, exc)
            return cache.locate(url).path
        if response.status_code == 304 and meta is not None:
            logger.debug("Cached line list for %s is current", url)
            return cache.locate(url).path
        response.raise_for_status()

    path = cache.store(url, response)
    logger.info("Downloaded %s (%d bytes)", url, len(response.content))
    return path
