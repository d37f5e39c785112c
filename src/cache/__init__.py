"""aiscan.cache package."""
