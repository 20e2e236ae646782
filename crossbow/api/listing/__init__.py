"""JSON listing resources."""
