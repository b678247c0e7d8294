"""Click command groups registered on the top-level ``sow`` CLI."""
