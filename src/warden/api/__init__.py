"""API layer: root router and shared dependencies."""
