"""Tenant isolation retrofit for the hospital management backend."""

__version__ = "1.0.0"
