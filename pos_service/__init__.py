"""Multi-tenant point-of-sale management service."""

__version__ = "1.0.0"
