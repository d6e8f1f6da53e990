"""Application modules owned outside the access engine."""
