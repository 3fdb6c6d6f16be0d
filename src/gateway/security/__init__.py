"""Request signing helpers."""
