"""Endpoint modules for the SecureChat API."""
