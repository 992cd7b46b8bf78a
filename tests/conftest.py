import json

import pytest

from datsite.errors import ArchiveExistsError, ArchiveNotFoundError
from datsite.models import FileInfo
from datsite.site import ProfileSite


class MemoryArchive:
    """In-memory archive. Set `fail[method] = exc` to make a call raise."""

    def __init__(self, url, files=None):
        self.url = url
        self.files = dict(files or {})
        self.dirs = {"/"}
        self.fail = {}
        self.reads = []

    def _check(self, method):
        exc = self.fail.get(method)
        if exc is not None:
            raise exc

    def add_broadcast(self, ts, content=None, name=None):
        content = content if content is not None else {"@type": "Comment", "text": f"post {ts}"}
        self.dirs.add("/broadcasts")
        self.files[f"/broadcasts/{name or ts}.json"] = json.dumps(content)

    def set_profile(self, profile):
        self.files["/profile.json"] = json.dumps(profile)

    async def read_file(self, path, encoding=None, timeout=None):
        self.reads.append(path)
        self._check("read_file")
        if path not in self.files:
            raise ArchiveNotFoundError(path)
        data = self.files[path]
        return data if encoding else data.encode()

    async def write_file(self, path, data):
        self._check("write_file")
        if isinstance(data, bytes):
            data = data.decode()
        self.files[path] = data

    async def stat(self, path):
        self._check("stat")
        if path not in self.files:
            raise ArchiveNotFoundError(path)
        return FileInfo(name=path, size=len(self.files[path]))

    async def list_files(self, path, timeout=None):
        self._check("list_files")
        prefix = path.rstrip("/") + "/"
        if path not in self.dirs:
            raise ArchiveNotFoundError(path)
        names = sorted(
            p[len(prefix):] for p in self.files
            if p.startswith(prefix) and "/" not in p[len(prefix):]
        )
        return {n: FileInfo(name=prefix + n, size=len(self.files[prefix + n])) for n in names}

    async def create_directory(self, path):
        self._check("create_directory")
        if path in self.dirs:
            raise ArchiveExistsError(path)
        self.dirs.add(path)


class Network(dict):
    """url -> MemoryArchive, doubling as the archive factory for sites."""

    def archive(self, url, **kwargs):
        self[url] = MemoryArchive(url, **kwargs)
        return self[url]

    def open(self, url):
        if url not in self:
            self.archive(url)
        return self[url]

    def site(self, url, **kwargs):
        return ProfileSite(self.open(url), archive_factory=self.open, **kwargs)


@pytest.fixture
def network():
    return Network()


@pytest.fixture
def alice(network):
    return network.site("dat://alice")
