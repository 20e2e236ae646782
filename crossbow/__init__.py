"""Crossbow: signed webhook ingestion and normalisation for GitHub events."""
