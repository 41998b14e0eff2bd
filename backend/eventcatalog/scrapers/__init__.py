"""Ingestion pipeline: extraction client, normalizer, orchestrator and scheduler."""
