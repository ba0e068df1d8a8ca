"""
Idempotency Module
==================

Binds a client-supplied Idempotency-Key to the resource its first request
created, so retried creation requests replay instead of duplicating.
"""

__version__ = "1.0.0"
