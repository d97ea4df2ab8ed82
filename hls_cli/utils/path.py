"""
Utilities for handling file paths and source URLs.
"""

import posixpath
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from pathvalidate import sanitize_filename


def is_remote_url(url: str) -> bool:
    """True for http(s) URLs with a host; local paths and file:// URLs are not remote."""
    parts = urlsplit(url)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def task_name(url: str) -> str:
    """
    Derives a task name from a playlist URL: the filename without its extension.

    e.g. http://example.com/123/hls/FromSoftware.m3u8 -> FromSoftware
    """
    filename = posixpath.basename(urlsplit(url).path.rstrip("/"))
    stem, _ = posixpath.splitext(filename)
    return sanitize_filename(stem or filename, platform="auto") or "playlist"


def base_uri(url: str) -> str:
    """
    Removes the last path component of a URL, keeping the trailing slash.

    e.g. http://example.com/123/hls/FromSoftware.m3u8 -> http://example.com/123/hls/
    """
    parts = urlsplit(url)
    directory = posixpath.dirname(parts.path)
    if not directory.endswith("/"):
        directory += "/"
    return urlunsplit((parts.scheme, parts.netloc, directory, "", ""))


def create_dir(directory_path: Path) -> None:
    """Creates a directory if it does not already exist."""
    directory_path.mkdir(parents=True, exist_ok=True)
