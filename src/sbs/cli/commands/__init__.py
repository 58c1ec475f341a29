"""Top-level sbs commands (one module per command)."""
