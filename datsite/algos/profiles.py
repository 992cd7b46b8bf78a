import asyncio
import logging

from datsite.errors import FetchOutcome, classify_failure
from datsite.models import Profile

logger = logging.getLogger(__name__)


async def fetch_remote_profile(site, timeout=None) -> Profile:
    """Fetch one site's profile, never raising.

    Only a timeout marks the profile as not downloaded; any other failure
    is reported as a reachable site with an empty profile.
    """
    try:
        profile = await site.cache.profile.get(timeout=timeout, bypass_cache=True)
    except Exception as e:
        outcome = classify_failure(e)
        logger.debug(f"Profile fetch for {site.url} failed ({outcome.value}): {e}")
        return Profile(url=site.url, downloaded=outcome is not FetchOutcome.TIMEOUT)

    result = Profile(profile) if isinstance(profile, dict) else Profile()
    result["url"] = site.url
    result["downloaded"] = True
    return result


async def get_remote_profiles(sites, timeout=None) -> list[Profile]:
    """Load the profiles of many sites simultaneously, in the order given."""
    return list(await asyncio.gather(*(fetch_remote_profile(site, timeout) for site in sites)))
