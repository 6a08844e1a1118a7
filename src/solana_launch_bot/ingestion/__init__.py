"""Signature ingestion, resolution and metadata clients."""
