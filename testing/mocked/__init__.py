"""Mocked third-party clients."""
