"""Credential envelope parsing and resolution."""
