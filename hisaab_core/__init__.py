"""HisaabDost offline caching, background sync and cache invalidation."""

__version__ = "0.4.0"
