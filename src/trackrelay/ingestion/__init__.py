"""Ingestion layer.

Adapters that turn raw feed messages into validated samples. Only the
motion gate decides what gets persisted.
"""

__all__: list[str] = []
