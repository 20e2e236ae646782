"""Webhook receiver resources."""
