"""Shared constants, data types and logging setup."""
