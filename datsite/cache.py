import json
import logging

from datsite.errors import ArchiveNotFoundError

logger = logging.getLogger(__name__)


class CachedFile:
    """A single archive file, read lazily and kept in memory.

    The cache is only refreshed by a `bypass_cache` read or replaced by `put`.
    Writes are not transactional: two overlapping `put` calls on the same
    path leave whichever finished last.
    """

    def __init__(self, archive, path: str, as_json: bool = False, document=None, fallback=None, encoding: str = "utf-8"):
        self.archive = archive
        self.path = path
        self.as_json = as_json
        self.document = document
        self.fallback = fallback
        self.encoding = encoding

        # loaded lazily
        self.contents = None

    def invalidate(self):
        self.contents = None

    async def get(self, timeout=None, bypass_cache=False):
        if self.contents is not None and not bypass_cache:
            return self.contents

        try:
            raw = await self.archive.read_file(self.path, encoding=self.encoding, timeout=timeout)
        except ArchiveNotFoundError:
            if self.fallback is None:
                raise
            logger.debug(f"{self.path} not found on {self.archive.url}, using fallback")
            return self.fallback

        if not raw:
            return self.fallback

        value = json.loads(raw) if self.as_json else raw
        if self.document is not None and isinstance(value, dict):
            value = self.document(value)
        self.contents = value
        return self.contents

    async def put(self, value):
        self.contents = value

        data = json.dumps(value, indent=2) if self.as_json else value
        await self.archive.write_file(self.path, data)


class SiteRegistry:
    """One site object per url, scoped to the owner that holds the registry."""

    def __init__(self, factory):
        self.factory = factory
        self.sites = {}

    def __len__(self):
        return len(self.sites)

    def __contains__(self, url):
        return url in self.sites

    def get(self, url: str):
        if url not in self.sites:
            self.sites[url] = self.factory(url)
        return self.sites[url]

    def resolve(self, descriptors) -> list:
        return [self.get(d["url"]) for d in descriptors]
