from dataclasses import dataclass
from datetime import datetime
from typing import Any

SCHEMA_CONTEXT = "http://schema.org"
DEFAULT_BROADCAST_TYPE = "Comment"
MEDIA_FIELDS = ("text", "image", "video", "audio")


class Profile(dict):
    """Profile document. Unknown fields are kept as-is."""

    @property
    def follows(self) -> list[dict]:
        follows = self.get("follows")
        return follows if isinstance(follows, list) else []

    def ensure_follows(self) -> list[dict]:
        """Return the stored follows list, creating it for mutation."""
        if not isinstance(self.get("follows"), list):
            self["follows"] = []
        return self["follows"]


class Broadcast(dict):
    """Broadcast document, a schema.org-style object keyed by `@type`."""

    @classmethod
    def create(cls, text=None, image=None, video=None, audio=None, type=DEFAULT_BROADCAST_TYPE):
        values = cls({"@context": SCHEMA_CONTEXT, "@type": type})
        for field, value in zip(MEDIA_FIELDS, (text, image, video, audio)):
            if value:
                values[field] = value
        return values

    @property
    def type(self) -> str:
        return self.get("@type") or ""


@dataclass
class FileInfo:
    name: str  # absolute archive path, e.g. '/broadcasts/1700000000000.json'
    size: int = 0
    mtime: datetime | None = None
    is_directory: bool = False


@dataclass
class FeedEntry:
    name: str
    author: Any  # ProfileSite
    publish_time: int
    info: FileInfo | None = None
    content: dict | None = None
    error: Exception | None = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "author": self.author.url,
            "publishTime": self.publish_time,
            "content": self.content,
            "error": str(self.error) if self.error else None,
        }
