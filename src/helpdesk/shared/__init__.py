"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (tickets, SLA,
idempotency, users).

DO NOT add ticket or SLA business rules to the shared kernel.
"""
