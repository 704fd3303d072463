"""HTTP API for access evaluation."""
