import asyncio
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass

from datsite.algos.feed import build_feed
from datsite.algos.profiles import get_remote_profiles
from datsite.archive import Archive, open_archive
from datsite.cache import CachedFile, SiteRegistry
from datsite.errors import ArchiveExistsError, DatSiteError, InvalidUrlError, MissingParameterError
from datsite.models import Broadcast, FeedEntry, Profile
from datsite.urls import clock_for, find_index, normalize_url, parse_broadcast_filename, site_key

logger = logging.getLogger(__name__)

PROFILE_PATH = "/profile.json"


@dataclass
class SiteCache:
    profile: CachedFile
    other_sites: SiteRegistry


class ProfileSite:
    """A participant's site: profile, follow graph, broadcasts and feed.

    Created from a url (the archive is opened with `archive_factory`) or
    from an archive object that already carries its `url`.

    follow, unfollow and set_profile read, modify and rewrite the whole
    profile, so concurrent calls on one site can lose updates. Pass
    `serialize_writes=True` to queue them behind a lock.
    """

    def __init__(self, url, archive_factory=open_archive, serialize_writes=False):
        if not url:
            raise MissingParameterError()
        if isinstance(url, str):
            self.url = url
            self.archive = archive_factory(url)
        else:
            if not getattr(url, "url", None):
                raise MissingParameterError("Archive has no url")
            self.url = url.url
            self.archive = url

        self.archive_factory = archive_factory
        self.clock = clock_for(self.url)
        self._write_lock = asyncio.Lock() if serialize_writes else None

        # managed data
        self.cache = SiteCache(
            profile=CachedFile(self.archive, PROFILE_PATH, as_json=True, document=Profile),
            other_sites=SiteRegistry(self._open_site),
        )

    def __repr__(self):
        return f"ProfileSite({self.url!r})"

    def _open_site(self, url):
        return ProfileSite(url, archive_factory=self.archive_factory)

    @asynccontextmanager
    async def _writing(self):
        if self._write_lock is None:
            yield
        else:
            async with self._write_lock:
                yield

    def _open_followed(self, url):
        """Return the registry site for `url`, or None if it can't be opened."""
        try:
            return self.cache.other_sites.get(url)
        except DatSiteError as e:
            logger.debug(f"Skipping followed site {url!r} on {self.url}: {e}")
            return None

    def _followed_sites(self, profile: Profile) -> list:
        records = [f for f in profile.follows if isinstance(f, dict) and f.get("url")]
        sites = (self._open_followed(f["url"]) for f in records)
        return [s for s in sites if s is not None]

    # Profile data

    async def get_profile(self) -> Profile:
        """Return the profile, or an empty one if it can't be read."""
        try:
            profile = await self.cache.profile.get()
        except Exception as e:
            logger.debug(f"Failure reading {PROFILE_PATH} on {self.url}. (This may not be a bug.) {e}")
            return Profile()
        if not isinstance(profile, Profile):
            logger.debug(f"{PROFILE_PATH} on {self.url} is not a JSON object, ignoring it")
            return Profile()
        return profile

    async def set_profile(self, updates: dict) -> Profile:
        async with self._writing():
            profile = await self.get_profile()
            profile.update(updates)
            await self.cache.profile.put(profile)
        return profile

    # Social relationships

    async def follow(self, url: str):
        if not url:
            raise MissingParameterError("follow() needs a url")
        key = normalize_url(url)
        if not key:
            raise InvalidUrlError(f"Not a site url: {url!r}")
        async with self._writing():
            profile = await self.get_profile()
            if find_index(profile.follows, key) == -1:
                profile.ensure_follows().append({"url": key})
            await self.cache.profile.put(profile)

    async def unfollow(self, url: str):
        async with self._writing():
            profile = await self.get_profile()
            index = find_index(profile.follows, url)
            if index != -1:
                del profile.ensure_follows()[index]
            await self.cache.profile.put(profile)

    async def is_following(self, url: str) -> bool:
        profile = await self.get_profile()
        return find_index(profile.follows, url) != -1

    async def is_friends_with(self, url: str, timeout=None) -> bool:
        """True if we follow `url` and its profile follows us back.

        A remote site that can't be read counts as not following back.
        """
        profile = await self.get_profile()
        index = find_index(profile.follows, url)
        if index == -1:
            return False

        site = self._open_followed(profile.follows[index]["url"])
        if site is None:
            return False
        (remote,) = await get_remote_profiles([site], timeout=timeout)
        return self._follows_us(remote)

    def _follows_us(self, profile) -> bool:
        follows = profile.get("follows")
        if not isinstance(follows, list):
            return False
        return find_index(follows, self.url) != -1

    async def list_following(self, timeout=None) -> list[Profile]:
        profile = await self.get_profile()
        return await get_remote_profiles(self._followed_sites(profile), timeout=timeout)

    async def list_friends(self, timeout=None) -> list[Profile]:
        # one fan-out: the followed profiles already carry their follows lists
        following = await self.list_following(timeout=timeout)
        return [p for p in following if self._follows_us(p)]

    async def list_known_followers(self, timeout=None) -> list[Profile]:
        return await self.list_friends(timeout=timeout)

    # Posting to the feed

    async def broadcast(self, text=None, image=None, video=None, audio=None) -> str:
        values = Broadcast.create(text=text, image=image, video=video, audio=audio)

        path = self.clock.next_path()
        await ensure_parent_directory_exists(self.archive, path)
        await self.archive.write_file(path, json.dumps(values, indent=2))
        logger.info(f"Broadcast {path} written to {self.url}")
        return self.url.rstrip("/") + path

    # Reading the feed

    async def list_broadcasts(self, **opts) -> list[FeedEntry]:
        return await build_feed([self], **opts)

    async def list_feed(self, **opts) -> list[FeedEntry]:
        profile = await self.get_profile()
        own = site_key(self.url)
        followed = [s for s in self._followed_sites(profile) if site_key(s.url) != own]
        return await build_feed([self] + followed, **opts)

    async def get_broadcast(self, path_or_entry) -> FeedEntry:
        entry = path_or_entry
        if isinstance(entry, str):
            info = await self.archive.stat(entry)
            entry = FeedEntry(
                name=info.name,
                author=self,
                publish_time=parse_broadcast_filename(info.name),
                info=info,
            )

        raw = await entry.author.archive.read_file(entry.name, encoding="utf-8")
        entry.content = json.loads(raw)
        entry.error = None
        return entry

    # Events

    async def create_activity_stream(self):
        # TODO: emit new broadcasts from followed sites as they replicate
        raise NotImplementedError("Live broadcast streams are not supported")


async def ensure_parent_directory_exists(archive: Archive, path: str):
    """Create each missing directory above `path`; existing ones are fine."""
    parts = path.split("/")[1:-1]
    for i in range(1, len(parts) + 1):
        directory = "/" + "/".join(parts[:i])
        try:
            await archive.create_directory(directory)
        except ArchiveExistsError as e:
            logger.debug(f"{directory} already exists on {archive.url}: {e}")
