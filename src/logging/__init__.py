"""aiscan.logging package."""
