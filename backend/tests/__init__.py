"""Bucket gateway backend test suite."""
