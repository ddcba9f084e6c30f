"""
Scripts Package.

This package contains operational scripts for the sentiment layer.

Scripts:
- check_sentiment: Live configuration, connectivity and health check
"""

# Scripts are meant to be run directly, not imported
