"""Error types and runtime configuration."""
