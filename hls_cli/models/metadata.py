"""
Pydantic models for the persisted state of a download task.
"""

import posixpath
from enum import Enum
from urllib.parse import urljoin, urlsplit

from pydantic import BaseModel, Field, field_validator


class Dialect(str, Enum):
    """How segment references in a playlist are written."""

    ABSOLUTE = "absolute"  # full http(s) URLs
    RELATIVE = "relative"  # paths resolved against the playlist's base URI


class SegmentRef(BaseModel):
    """A single media segment referenced by a playlist."""

    uri: str
    line: str = ""
    declared_size: int | None = None

    @property
    def filename(self) -> str:
        """The last path component of the URI, without any query string."""
        return posixpath.basename(urlsplit(self.uri).path)

    def url(self, base_uri: str) -> str:
        """Returns a fetchable URL, resolving relative references against base_uri."""
        if self.uri.startswith(("http://", "https://")):
            return self.uri
        return urljoin(base_uri, self.uri)


class Metadata(BaseModel):
    """
    Everything the attach phase learns about a playlist.

    This is the resumable unit: once persisted, a later attach for the same
    source URL loads it from the cache instead of fetching the playlist again.
    """

    source_url: str
    base_uri: str
    name: str
    dialect: Dialect = Dialect.ABSOLUTE
    segments: list[SegmentRef] = Field(min_length=1)
    total_size: int = 0

    @field_validator("total_size")
    @classmethod
    def validate_total_size(cls, v: int) -> int:
        """Negative sizes are treated as unknown."""
        return max(v, 0)

    @property
    def declared_size(self) -> int:
        """Sum of the sizes declared inside the playlist itself."""
        return sum(s.declared_size or 0 for s in self.segments)

    def segment_urls(self) -> list[str]:
        return [s.url(self.base_uri) for s in self.segments]
