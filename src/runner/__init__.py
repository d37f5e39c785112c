"""aiscan.runner package."""
