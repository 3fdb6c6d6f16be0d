"""Output rehosting to object storage."""
