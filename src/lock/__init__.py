"""aiscan.lock package."""
