"""HTTP surface: health probes, the login endpoint and JSON error handlers."""
