"""aiscan.checkpoint package."""
