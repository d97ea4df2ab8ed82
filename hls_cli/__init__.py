"""
hls-cli: a resumable HTTP Live Streaming downloader.
"""

__version__ = "0.1.0"
