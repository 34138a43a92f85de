"""Infrastructure layer: persistence, integrations, observability and lifecycle."""
