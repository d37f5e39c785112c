"""aiscan: resumable-execution core for batch AI accessibility scans."""

from aiscan.version import __version__

__all__ = ["__version__"]
