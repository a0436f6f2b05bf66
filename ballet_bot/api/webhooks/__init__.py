"""GitHub webhook endpoint."""
