"""Warden - role-based access control engine for admin consoles."""

__version__ = "0.1.0"
