"""Flask CLI command groups."""
