"""
Utilities package.

Modules:
    cache: Cache interface with in-memory and Redis backends
    logger: Structured logging configuration
    security: Password hashing, JWT helpers and credential generation
"""
