"""Top-level package for the storefront webhook functions (FastAPI on serverless)."""

__all__ = ["__version__"]

__version__ = "0.1.0"
