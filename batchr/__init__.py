"""Batched, concurrent importer for SurrealQL export files over the SurrealDB HTTP API."""

__version__ = "0.1.0"
__all__ = ["__version__"]