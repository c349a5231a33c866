"""Refresh a DuckDB database with the latest DB-IP city lite dataset."""

__version__ = "1.0.0"
