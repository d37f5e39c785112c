"""aiscan.config package."""
