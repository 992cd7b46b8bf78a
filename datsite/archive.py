"""Archive collaborators.

The core only talks to archives through the async methods on `Archive`.
`LocalArchive` serves the local identity from a directory on disk and
`HttpArchive` reads remote sites through an HTTP gateway.
"""
import asyncio
import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Protocol

import httpx

from datsite import config
from datsite.errors import (
    ArchiveError,
    ArchiveExistsError,
    ArchiveNotFoundError,
    ArchiveTimeoutError,
    MissingParameterError,
    ReadOnlyArchiveError,
)
from datsite.models import FileInfo
from datsite.urls import normalize_url

logger = logging.getLogger(__name__)


class Archive(Protocol):
    url: str

    async def read_file(self, path: str, encoding: str | None = None, timeout: float | None = None): ...

    async def write_file(self, path: str, data) -> None: ...

    async def stat(self, path: str) -> FileInfo: ...

    async def list_files(self, path: str, timeout: float | None = None) -> dict[str, FileInfo]: ...

    async def create_directory(self, path: str) -> None: ...


def clean_path(path: str) -> str:
    """Return `path` as an absolute archive path; rejects '..' segments."""
    parts = [p for p in str(path).split("/") if p and p != "."]
    if ".." in parts:
        raise ArchiveError(f"Path escapes the archive: {path}")
    return "/" + "/".join(parts)


def join_path(directory: str, name: str) -> str:
    return clean_path(f"{directory}/{name}")


class LocalArchive:
    """Archive stored in a directory on the local filesystem."""

    def __init__(self, root, url: str):
        if not url:
            raise MissingParameterError("LocalArchive needs a url")
        self.root = Path(root).resolve()
        self.url = url
        self.root.mkdir(parents=True, exist_ok=True)

    def __repr__(self):
        return f"LocalArchive({str(self.root)!r}, {self.url!r})"

    def _resolve(self, path: str) -> Path:
        return self.root.joinpath(*clean_path(path).split("/")[1:])

    async def _run(self, fn, *args, timeout=None):
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout)
        except asyncio.TimeoutError:
            raise ArchiveTimeoutError(f"Timed out accessing {self.url}") from None

    # blocking helpers, run in a worker thread
    def _read(self, path, encoding):
        target = self._resolve(path)
        try:
            data = target.read_bytes()
        except FileNotFoundError as e:
            raise ArchiveNotFoundError(f"File not found: {path}") from e
        except OSError as e:
            raise ArchiveError(f"Failed to read {path}: {e}") from e
        return data.decode(encoding) if encoding else data

    def _write(self, path, data):
        if isinstance(data, str):
            data = data.encode("utf-8")
        try:
            self._resolve(path).write_bytes(data)
        except FileNotFoundError as e:
            raise ArchiveNotFoundError(f"Parent directory missing for {path}") from e
        except OSError as e:
            raise ArchiveError(f"Failed to write {path}: {e}") from e

    def _stat(self, path):
        try:
            st = self._resolve(path).stat()
        except FileNotFoundError as e:
            raise ArchiveNotFoundError(f"File not found: {path}") from e
        return FileInfo(
            name=clean_path(path),
            size=st.st_size,
            mtime=datetime.fromtimestamp(st.st_mtime, tz=timezone.utc),
            is_directory=self._resolve(path).is_dir(),
        )

    def _list(self, path):
        target = self._resolve(path)
        if not target.is_dir():
            raise ArchiveNotFoundError(f"Directory not found: {path}")
        return {child.name: self._stat(join_path(path, child.name)) for child in sorted(target.iterdir())}

    def _mkdir(self, path):
        try:
            self._resolve(path).mkdir()
        except FileExistsError as e:
            raise ArchiveExistsError(f"Already exists: {path}") from e
        except FileNotFoundError as e:
            raise ArchiveNotFoundError(f"Parent directory missing for {path}") from e

    async def read_file(self, path, encoding=None, timeout=None):
        return await self._run(self._read, path, encoding, timeout=timeout)

    async def write_file(self, path, data):
        await self._run(self._write, path, data)

    async def stat(self, path):
        return await self._run(self._stat, path)

    async def list_files(self, path, timeout=None):
        return await self._run(self._list, path, timeout=timeout)

    async def create_directory(self, path):
        await self._run(self._mkdir, path)


def _parse_mtime(value):
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


class HttpArchive:
    """Read-only view of a remote site served by an HTTP gateway.

    Files live at `{gateway}/{host}{path}`. Requesting a directory with
    `Accept: application/json` returns its listing as a JSON array of
    `{name, size, mtime, isDirectory}` objects.
    """

    def __init__(self, url: str, gateway: str, client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        self.url = url
        host = normalize_url(url)
        if not host:
            raise MissingParameterError(f"Not a site url: {url!r}")
        self.base_url = f"{gateway.rstrip('/')}/{host.split('://', 1)[1]}"
        self.timeout = timeout
        self._client = client

    def __repr__(self):
        return f"HttpArchive({self.url!r})"

    @asynccontextmanager
    async def _session(self):
        if self._client is not None:
            yield self._client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def _request(self, method, path, timeout=None, headers=None):
        href = self.base_url + path
        kwargs = {"headers": headers}
        if timeout is not None:
            kwargs["timeout"] = timeout
        try:
            async with self._session() as client:
                r = await client.request(method, href, **kwargs)
        except httpx.TimeoutException as e:
            raise ArchiveTimeoutError(f"Timed out fetching {self.url}{path}") from e
        except httpx.HTTPError as e:
            raise ArchiveError(f"Failed to fetch {self.url}{path}: {e}") from e

        if r.status_code == 404:
            raise ArchiveNotFoundError(f"File not found: {self.url}{path}")
        if r.status_code != 200:
            raise ArchiveError(f"Fetch of {self.url}{path} failed with status {r.status_code}")
        return r

    async def read_file(self, path, encoding=None, timeout=None):
        r = await self._request("GET", clean_path(path), timeout=timeout)
        return r.content.decode(encoding) if encoding else r.content

    async def stat(self, path):
        path = clean_path(path)
        r = await self._request("HEAD", path)
        modified = r.headers.get("last-modified")
        return FileInfo(
            name=path,
            size=int(r.headers.get("content-length", 0)),
            mtime=parsedate_to_datetime(modified) if modified else None,
        )

    async def list_files(self, path, timeout=None):
        path = clean_path(path)
        r = await self._request("GET", path.rstrip("/") + "/", timeout=timeout, headers={"Accept": "application/json"})
        try:
            items = r.json()
        except json.JSONDecodeError as e:
            raise ArchiveError(f"Malformed listing for {self.url}{path}") from e
        if isinstance(items, dict):
            items = [dict(v, name=k) if isinstance(v, dict) else {"name": k} for k, v in items.items()]

        files = {}
        for item in items:
            name = item.get("name") if isinstance(item, dict) else None
            if not name:
                continue
            name = name.rsplit("/", 1)[-1]
            files[name] = FileInfo(
                name=join_path(path, name),
                size=item.get("size") or 0,
                mtime=_parse_mtime(item.get("mtime")),
                is_directory=bool(item.get("isDirectory")),
            )
        return files

    async def write_file(self, path, data):
        raise ReadOnlyArchiveError(f"{self.url} is read-only")

    async def create_directory(self, path):
        raise ReadOnlyArchiveError(f"{self.url} is read-only")


def open_archive(url: str) -> HttpArchive:
    """Default factory for sites reached by url alone."""
    logger.debug(f"Opening remote archive {url} via {config.GATEWAY_URL}")
    return HttpArchive(url, config.GATEWAY_URL, timeout=config.FETCH_TIMEOUT)
