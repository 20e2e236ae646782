"""Shared helpers used across the Bronze and Silver layers."""
