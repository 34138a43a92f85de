"""HTTP surface of the service (health endpoints only)."""
