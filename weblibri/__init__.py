"""weblibri - conversion pipeline and catalog access for a personal e-book server."""

__version__ = "0.4.0"
