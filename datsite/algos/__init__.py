from .feed import DEFAULT_LIMIT, build_feed
from .profiles import get_remote_profiles

__all__ = ["DEFAULT_LIMIT", "build_feed", "get_remote_profiles"]
