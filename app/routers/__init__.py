"""API routers. Prefixes are applied in app.main."""
