"""aiscan.core package."""
