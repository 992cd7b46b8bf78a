import re
import time

BROADCASTS_DIR = "/broadcasts"

URL_REGEX = re.compile(r"^\s*([a-z][a-z0-9+.-]*://[^/?#\s]+)", re.IGNORECASE)
BROADCAST_FILENAME_REGEX = re.compile(r"(\d+)\.json$", re.IGNORECASE)


def normalize_url(url) -> str | None:
    """Reduce a site identifier to `scheme://host`, or None if it has no such prefix."""
    if not isinstance(url, str):
        return None
    match = URL_REGEX.match(url)
    if match:
        return match.group(1).lower()
    return None


def site_key(url) -> str | None:
    """Key used for identity comparisons; falls back to the raw value."""
    return normalize_url(url) or url


def by_url(url):
    """Return a predicate matching follow records that point at the same site as `url`."""
    key = site_key(url)
    return lambda record: isinstance(record, dict) and site_key(record.get("url")) == key


def find_index(records, url) -> int:
    match = by_url(url)
    for i, record in enumerate(records):
        if match(record):
            return i
    return -1


# Broadcast naming
def broadcast_path(ts: int) -> str:
    # zero-pad so lexicographic order matches numeric order
    return f"{BROADCASTS_DIR}/{ts:013d}.json"


def parse_broadcast_filename(name: str) -> int | None:
    match = BROADCAST_FILENAME_REGEX.search(name or "")
    if match:
        return int(match.group(1))
    return None


class BroadcastClock:
    """Strictly increasing millisecond timestamps for one site's broadcasts."""

    def __init__(self, now=None):
        self._now = now or (lambda: int(time.time() * 1000))
        self.last = 0

    def next(self) -> int:
        ts = max(self._now(), self.last + 1)
        self.last = ts
        return ts

    def next_path(self) -> str:
        return broadcast_path(self.next())


# one clock per site identity, shared by every ProfileSite in the process
_clocks = {}


def clock_for(url) -> BroadcastClock:
    key = site_key(url)
    if key not in _clocks:
        _clocks[key] = BroadcastClock()
    return _clocks[key]
