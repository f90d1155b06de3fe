"""API routers, each mounted under ``settings.api_prefix``."""
