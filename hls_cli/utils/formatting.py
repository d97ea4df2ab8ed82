"""
Helper functions for formatting sizes, rates and durations for the console.
"""

_SIZE_UNITS = ["B", "KB", "MB", "GB", "TB"]


def format_size(bytes_size: float) -> str:
    """Formats bytes into a human-readable size string (e.g., '145.3 MB')."""
    if bytes_size <= 0:
        return "0 B"
    unit = 0
    while bytes_size >= 1024 and unit < len(_SIZE_UNITS) - 1:
        bytes_size /= 1024
        unit += 1
    if unit == 0:
        return f"{int(bytes_size)} B"
    return f"{bytes_size:.1f} {_SIZE_UNITS[unit]}"


def format_rate(bytes_size: int, seconds: float) -> str:
    """Average transfer rate, e.g. '2.4 MB/s'."""
    if seconds <= 0:
        return format_size(0) + "/s"
    return f"{format_size(bytes_size / seconds)}/s"


def format_duration(seconds: float) -> str:
    """Formats seconds as e.g. '1h 02m 05s', '3m 07s' or '12s'."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours:
        return f"{hours}h {minutes:02d}m {secs:02d}s"
    if minutes:
        return f"{minutes}m {secs:02d}s"
    return f"{secs}s"
