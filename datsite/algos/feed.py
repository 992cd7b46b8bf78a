import asyncio
import json
import logging
from datetime import datetime

from datsite import config
from datsite.models import Broadcast, FeedEntry
from datsite.urls import BROADCASTS_DIR, parse_broadcast_filename

logger = logging.getLogger(__name__)

DEFAULT_LIMIT = config.FEED_LIMIT


def to_millis(value) -> int | None:
    """Coerce a feed bound to milliseconds since the epoch; falsy means unbounded."""
    if not value:
        return None
    if isinstance(value, datetime):
        return int(value.timestamp() * 1000)
    return int(float(value))


async def list_site_entries(site, after=None, before=None, timeout=None) -> list[FeedEntry]:
    """List one site's broadcasts within (after, before). A failed listing yields nothing."""
    try:
        files = await site.archive.list_files(BROADCASTS_DIR, timeout=timeout)
    except Exception as e:
        logger.debug(f"Could not list {BROADCASTS_DIR} on {site.url}: {e}")
        return []

    entries = []
    for filename, info in files.items():
        publish_time = parse_broadcast_filename(filename)
        if not publish_time:
            continue
        if after and publish_time <= after:
            continue
        if before and publish_time >= before:
            continue
        entries.append(FeedEntry(name=info.name, author=site, publish_time=publish_time, info=info))
    return entries


async def read_entry(entry: FeedEntry, timeout=None) -> FeedEntry:
    try:
        raw = await entry.author.archive.read_file(entry.name, encoding="utf-8", timeout=timeout)
        entry.content = json.loads(raw)
    except Exception as e:
        logger.warning(f"Failed to read {entry.author.url}{entry.name}: {e}")
        entry.error = e
        entry.content = None
    return entry


def matches_type(entry: FeedEntry, type: str) -> bool:
    if not isinstance(entry.content, dict):
        return False
    return str(Broadcast(entry.content).type).lower() == type.lower()


async def build_feed(sites, after=None, before=None, limit=None, meta_only=False, type=None,
                     reverse=False, timeout=None) -> list[FeedEntry]:
    """Merge the broadcasts of `sites` into one time-ordered feed.

    Sorted ascending by publish time, newest first when `reverse` is set.
    Ties keep listing order: sites in the order given, files by name.
    `limit` of 0 or None means DEFAULT_LIMIT, not unlimited.
    """
    after = to_millis(after)
    before = to_millis(before)
    limit = limit or DEFAULT_LIMIT

    # Fan out listings
    listings = await asyncio.gather(
        *(list_site_entries(site, after, before, timeout) for site in sites)
    )
    feed = [entry for entries in listings for entry in entries]

    feed.sort(key=lambda entry: entry.publish_time, reverse=bool(reverse))
    feed = feed[:limit]

    if meta_only:
        return feed

    # Fan out content reads
    await asyncio.gather(*(read_entry(entry, timeout) for entry in feed))

    if type:
        return [entry for entry in feed if matches_type(entry, type)]
    return feed
