import pytest
from pydantic import ValidationError

from hls_cli.models.config import DownloadConfig
from hls_cli.models.metadata import Dialect, Metadata, SegmentRef
from hls_cli.models.progress import DownloadProgress
from hls_cli.utils.formatting import format_duration, format_rate, format_size
from hls_cli.utils.path import base_uri, is_remote_url, task_name


@pytest.mark.parametrize(
    "url, expected",
    [
        ("http://example.com/123/hls/FromSoftware.m3u8", "FromSoftware"),
        ("https://example.com/live/video.m3u8?token=abc", "video"),
        ("https://example.com/a/b/index", "index"),
        ("https://example.com/", "playlist"),
    ],
)
def test_task_name(url, expected):
    assert task_name(url) == expected


def test_base_uri_drops_last_component_and_query():
    assert base_uri("http://example.com/123/hls/FromSoftware.m3u8?x=1") == (
        "http://example.com/123/hls/"
    )
    assert base_uri("http://example.com/video.m3u8") == "http://example.com/"


@pytest.mark.parametrize(
    "url, expected",
    [
        ("http://example.com/a.m3u8", True),
        ("https://example.com/a.m3u8", True),
        ("file:///tmp/a.m3u8", False),
        ("/tmp/a.m3u8", False),
        ("http:///a.m3u8", False),
    ],
)
def test_is_remote_url(url, expected):
    assert is_remote_url(url) is expected


def test_segment_ref_url_resolution():
    relative = SegmentRef(uri="sub/seg0.ts")
    absolute = SegmentRef(uri="https://cdn/a/seg1.ts?sig=1")

    assert relative.url("http://host/x/") == "http://host/x/sub/seg0.ts"
    assert relative.filename == "seg0.ts"
    assert absolute.url("http://host/x/") == "https://cdn/a/seg1.ts?sig=1"
    assert absolute.filename == "seg1.ts"


def test_metadata_requires_segments_and_clamps_size():
    with pytest.raises(ValidationError):
        Metadata(source_url="http://h/a.m3u8", base_uri="http://h/", name="a", segments=[])

    metadata = Metadata(
        source_url="http://h/a.m3u8",
        base_uri="http://h/",
        name="a",
        dialect=Dialect.RELATIVE,
        segments=[SegmentRef(uri="a.ts", declared_size=5), SegmentRef(uri="b.ts")],
        total_size=-3,
    )
    assert metadata.total_size == 0
    assert metadata.declared_size == 5
    assert metadata.segment_urls() == ["http://h/a.ts", "http://h/b.ts"]


def test_download_progress_fraction():
    assert DownloadProgress(completed_bytes=50, total_bytes=200).fraction == 0.25
    assert DownloadProgress(completed_bytes=300, total_bytes=200).fraction == 1.0
    assert DownloadProgress(completed_bytes=0, total_bytes=0).fraction == 0.0


def test_config_normalises_suffix_extension_and_retry_limit():
    config = DownloadConfig(
        workspace="/tmp/ws",
        segment_suffix="m4s",
        output_extension=".mp4",
        segment_retry_limit=0,
    )

    assert config.segment_suffix == ".m4s"
    assert config.output_extension == "mp4"
    assert config.segment_retry_limit is None


@pytest.mark.parametrize(
    "field, value",
    [
        ("workspace", ""),
        ("probe_concurrency", 0),
        ("probe_concurrency", 65),
        ("progress_interval", 0),
        ("segment_retry_delay", -1),
        ("chunk_size", 10),
        ("output_extension", "a/b"),
    ],
)
def test_config_rejects_invalid_values(field, value):
    settings = {"workspace": "/tmp/ws", field: value}
    with pytest.raises(ValidationError):
        DownloadConfig(**settings)


def test_ini_keys_exclude_internal_fields():
    keys = DownloadConfig.get_ini_keys()

    assert "workspace" in keys
    assert "segment_retry_limit" in keys
    assert "config_path" not in keys
    assert "source_urls" not in keys


@pytest.mark.parametrize(
    "size, expected",
    [(0, "0 B"), (512, "512 B"), (1536, "1.5 KB"), (5 * 1024**3, "5.0 GB")],
)
def test_format_size(size, expected):
    assert format_size(size) == expected


def test_format_rate_and_duration():
    assert format_rate(2048, 2) == "1.0 KB/s"
    assert format_rate(2048, 0) == "0 B/s"
    assert format_duration(12.7) == "12s"
    assert format_duration(187) == "3m 07s"
    assert format_duration(3725) == "1h 02m 05s"
