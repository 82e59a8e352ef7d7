"""Shared helpers for image handling and logging setup."""
