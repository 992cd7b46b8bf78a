from datsite.archive import HttpArchive, LocalArchive, open_archive
from datsite.cache import CachedFile, SiteRegistry
from datsite.errors import (
    ArchiveError,
    ArchiveExistsError,
    ArchiveNotFoundError,
    ArchiveTimeoutError,
    DatSiteError,
    FetchOutcome,
    InvalidUrlError,
    MissingParameterError,
    ReadOnlyArchiveError,
)
from datsite.models import Broadcast, FeedEntry, FileInfo, Profile
from datsite.site import ProfileSite
from datsite.urls import normalize_url

__all__ = [
    "ArchiveError",
    "ArchiveExistsError",
    "ArchiveNotFoundError",
    "ArchiveTimeoutError",
    "Broadcast",
    "CachedFile",
    "DatSiteError",
    "FeedEntry",
    "FetchOutcome",
    "FileInfo",
    "HttpArchive",
    "InvalidUrlError",
    "LocalArchive",
    "MissingParameterError",
    "Profile",
    "ProfileSite",
    "ReadOnlyArchiveError",
    "SiteRegistry",
    "normalize_url",
    "open_archive",
]
