"""Configuration and built-in method catalogue."""
