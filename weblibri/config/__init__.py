"""Environment-level settings."""
