"""HTTP API for Hyperlocal."""
