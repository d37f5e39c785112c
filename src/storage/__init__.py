"""aiscan.storage package."""
